"""Member (staff user) management page."""
import streamlit as st

from core.constants import USER_ROLES
from ui.components import render_pagination, show_result

ROLE_EMOJI = {"admin": "👑", "manager": "🔑", "user": "🧑"}
PAGE_SIZE = 10


def render(services, session):
    """Render member management page."""
    t = session.t
    auth = session.auth
    current = session.auth_store.user

    if not session.auth_actions.has_permission("users.view"):
        st.error(f"⛔ {t('common.no_permission')}")
        return

    st.title(f"🧑‍💻 {t('members.title')}")
    can_create = session.auth_actions.has_permission("users.create")
    can_edit = session.auth_actions.has_permission("users.edit")
    can_delete = session.auth_actions.has_permission("users.delete")

    if can_create:
        with st.expander(f"➕ {t('members.add')}"):
            with st.form("new_member_form", clear_on_submit=True):
                name = st.text_input(f"{t('members.name')} *")
                email = st.text_input(f"{t('customers.email')} *")
                pin = st.text_input(f"{t('auth.pin')} *", type="password", max_chars=6)
                role = st.selectbox(t("members.role"), USER_ROLES, index=USER_ROLES.index("user"))
                submitted = st.form_submit_button(t("members.create"))
            if submitted:
                if show_result(auth.create_user(email, pin, name, role), t("members.created", name=name)):
                    st.rerun()

    st.header(f"👥 {t('members.active')}")
    page = auth.get_users_paginated(st.session_state.get("members_page", 1), PAGE_SIZE)
    if not page.items:
        st.info(t("members.none"))
    for user in page.items:
        is_self = current is not None and user.id == current.id
        with st.container():
            col1, col2, col3, col4 = st.columns([3, 2, 2, 2])
            with col1:
                st.write(f"{ROLE_EMOJI.get(user.role, '')} **{user.name}**")
                st.caption(user.email)
            with col2:
                st.caption(f"{t('members.role')}: {user.role.title()}")
                if user.last_login:
                    st.caption(f"{t('members.last_login')}: {user.last_login[:16].replace('T', ' ')}")
            with col3:
                if can_edit and not is_self:
                    new_role = st.selectbox(
                        t("members.change_role"),
                        USER_ROLES,
                        index=USER_ROLES.index(user.role),
                        key=f"role_{user.id}",
                    )
                    if new_role != user.role and st.button("💾 Save", key=f"save_role_{user.id}"):
                        if show_result(auth.update_user(user.id, role=new_role), t("members.updated", name=user.name)):
                            st.rerun()
            with col4:
                if can_delete and not is_self:
                    if st.button(f"🗑️ {t('common.delete')}", key=f"delete_{user.id}"):
                        if show_result(auth.delete_user(user.id), t("members.deleted", name=user.name)):
                            st.rerun()
                elif is_self:
                    st.caption(t("members.you"))
            st.divider()

    target = render_pagination(page, "members")
    if target is not None:
        st.session_state.members_page = target
        st.rerun()

    deleted = auth.get_deleted_users()
    if deleted and can_edit:
        st.header(f"🗃️ {t('members.deleted_users')}")
        for user in deleted:
            col1, col2 = st.columns([4, 1])
            col1.write(f"~~{user.name}~~ · {user.email}")
            if col2.button(f"♻️ {t('members.restore')}", key=f"restore_{user.id}"):
                if show_result(auth.restore_user(user.id), t("members.restored", name=user.name)):
                    st.rerun()

    # Statistics
    st.header(f"📊 {t('members.statistics')}")
    users = auth.get_users()
    col1, col2, col3 = st.columns(3)
    for col, role in zip((col1, col2, col3), USER_ROLES):
        col.metric(role.title(), sum(1 for u in users if u.role == role))
