"""Sign-in screen: pick a user, enter the 6-digit PIN."""
import streamlit as st


def render(services, session):
    """Render the sign-in form. Reruns the app once a user is signed in."""
    t = session.t
    settings = services.settings.get_settings()
    col1, col2, col3 = st.columns([1, 2, 1])
    with col2:
        st.title(f"💳 {settings.name if settings else 'Post POS'}")
        st.caption(t("auth.sign_in_subtitle"))

        users = session.auth.get_users_for_login()
        if not users:
            st.error(t("auth.no_users"))
            return

        with st.form("sign_in_form"):
            user = st.selectbox(
                t("auth.user"),
                users,
                format_func=lambda u: f"{u.name} ({u.role})",
                key="sign_in_user",
            )
            pin = st.text_input(t("auth.pin"), type="password", max_chars=6, key="sign_in_pin")
            remember = st.checkbox(t("auth.remember_me"), key="sign_in_remember")
            submitted = st.form_submit_button(t("auth.sign_in"), use_container_width=True)

        if submitted:
            result = session.auth_actions.sign_in(user.email, pin, remember=remember)
            if result.success:
                st.toast(t("auth.welcome", name=result.value.name), icon="👋")
                st.rerun()
            else:
                st.error(f"❌ {result.error}")
