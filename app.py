from __future__ import annotations
import os, sys
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

import streamlit as st
import pandas as pd
import gspread
from google.oauth2.service_account import Credentials

from answer_board.bootstrap import Services, build_services
from answer_board.config import Settings, USERS_SHEET, USER_HEADERS, load_settings
from answer_board.errors import ConfigurationError, SecurityViolationError
from answer_board.log import get_logger, setup_logging
from answer_board.models import is_published, last_modified_at, parse_config
from answer_board.quotas import retry_429
from answer_board.store import GspreadStore

logger = get_logger("answer_board.app")


@st.cache_resource(show_spinner=False)
def get_settings() -> Settings:
    settings = load_settings(dict(st.secrets))
    setup_logging(settings.debug)
    return settings


@st.cache_resource(show_spinner=False)
def get_gspread_client(_settings: Settings) -> gspread.Client:
    creds_dict = _settings.service_account
    if not creds_dict:
        st.error("Missing service account in secrets (gcp_service_account).")
        st.stop()
    scopes = [
        "https://www.googleapis.com/auth/spreadsheets",
        "https://www.googleapis.com/auth/drive.readonly",
    ]
    credentials = Credentials.from_service_account_info(creds_dict, scopes=scopes)
    return gspread.authorize(credentials)


def _session_email() -> str | None:
    """Signed-in email from Streamlit auth, else whatever the sidebar holds."""
    user = getattr(st, "user", None)
    email = getattr(user, "email", None) if user is not None else None
    return email or st.session_state.get("login_email") or None


@st.cache_resource(show_spinner=False)
def get_services(sheet_url: str) -> Services:
    """One cache + lookup stack for the whole process."""
    settings = get_settings()
    ss = retry_429(get_gspread_client(settings).open_by_url, sheet_url)
    store = GspreadStore(ss)
    store.ensure_sheet(USERS_SHEET, USER_HEADERS)
    logger.info("Answer board services ready for %s", ss.id)
    return build_services(settings, store, identity=_session_email)


# ---------- page ----------
st.set_page_config(page_title="Answer Board Admin", page_icon="🗂️", layout="wide")
st.title("🗂️ Answer Board Admin")

try:
    settings = get_settings()
except ConfigurationError as e:
    st.error(str(e))
    st.stop()

services = get_services(settings.sheet_url)
directory, lookup = services.directory, services.lookup

# ---------- sidebar ----------
with st.sidebar:
    st.subheader("Who are you?")
    if getattr(getattr(st, "user", None), "email", None):
        st.caption(f"Signed in as {st.user.email}")
    else:
        st.text_input("Your email", key="login_email")
    me_email = lookup.current_user_email()
    is_admin = services.guard.is_admin(me_email)
    if is_admin:
        st.caption("Administrator")

    refresh = st.button("↻ Refresh my record")

if not me_email:
    st.info("Enter your email in the sidebar to continue.")
    st.stop()

# ---------- my board ----------
me = directory.find_user_by_email(me_email)
if me and refresh:
    me = directory.find_user_by_id_fresh(me["userId"])

st.subheader("My board")
if not me:
    st.write("No board registered for this account (or the sheet is unavailable right now).")
    if st.button("Register"):
        created = lookup.create_user(me_email)
        if created:
            st.success("Registered.")
            st.rerun()
        else:
            st.error("Registration failed; please retry in a moment.")
else:
    cfg = parse_config(me)
    col1, col2, col3 = st.columns(3)
    col1.metric("Status", "Active" if me.get("isActive") else "Inactive")
    col2.metric("Published", "Yes" if is_published(me) else "No")
    modified = last_modified_at(me)
    col3.metric("Last modified", modified.strftime("%Y-%m-%d %H:%M") if modified else "—")
    with st.expander("Configuration", expanded=False):
        st.json(cfg)
    publish = st.toggle("Publish board", value=bool(cfg.get("isPublished")))
    if publish != bool(cfg.get("isPublished")):
        res = lookup.update_user(me["userId"], {"config": {"isPublished": publish}})
        if res.success:
            st.rerun()
        st.error(f"Update failed: {res.message}")

# ---------- admin ----------
if is_admin:
    with st.expander("👥 Users", expanded=False):
        users = lookup.list_users()
        if not users:
            st.info("No users (or the sheet is unavailable right now).")
        else:
            df = pd.DataFrame([
                {
                    "userId": u.get("userId", ""),
                    "adminEmail": u.get("adminEmail", ""),
                    "active": bool(u.get("isActive")),
                    "published": is_published(u),
                    "lastModified": u.get("lastModified", ""),
                }
                for u in users
            ])
            st.dataframe(df, width="stretch")
            target = st.selectbox("User", df["userId"].tolist(), key="admin_target")
            c1, c2 = st.columns(2)
            with c1:
                if st.button("Show secure record"):
                    try:
                        st.json(directory.get_secure_user_info(target) or {})
                    except SecurityViolationError as e:
                        st.error(str(e))
            with c2:
                if st.button("Deactivate"):
                    res = lookup.deactivate_user(target)
                    if res.success:
                        st.success("Deactivated.")
                        st.rerun()
                    st.error(f"Deactivate failed: {res.message}")

    with st.expander("🧊 Cache layers", expanded=False):
        st.table(pd.DataFrame(services.cache.describe()))
        if st.button("Run health check"):
            st.json(lookup.health())
        if me and st.button("🧹 Drop my cached entries"):
            services.cache.invalidate(me.get("userId"), me.get("adminEmail"))
            st.rerun()
