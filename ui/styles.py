"""Touch-friendly CSS for the POS screens."""
import streamlit as st


def apply_pos_styles():
    """Apply touch-screen and mobile CSS overrides."""
    st.markdown("""
    <style>
    /* Expand main content when sidebar is collapsed */
    section[data-testid="stSidebar"][aria-expanded="false"] ~ div[data-testid="stAppViewContainer"] {
        margin-left: 0 !important;
    }

    section[data-testid="stSidebar"] {
        width: 18rem !important;
        min-width: 18rem !important;
        max-width: 18rem !important;
    }

    /* Large tap targets at the register */
    .stButton button, .stDownloadButton button, .stFormSubmitButton button {
        min-height: 48px !important;
        font-size: 16px !important;
    }

    /* Order totals block */
    .pos-totals {
        font-size: 1.1rem;
        line-height: 1.8;
        text-align: right;
    }
    .pos-totals .grand-total {
        font-size: 1.6rem;
        font-weight: 700;
    }

    @media (max-width: 768px) {
        .block-container {
            padding-left: 1rem !important;
            padding-right: 1rem !important;
        }

        /* Form inputs - prevent zoom on iOS */
        input, select, textarea {
            font-size: 16px !important;
        }
    }

    td {vertical-align: middle !important;}
    </style>
    """, unsafe_allow_html=True)
