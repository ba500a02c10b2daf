"""
app.py
Streamlit Gym Management System (owner/staff back office).
Run: streamlit run app.py
"""

from __future__ import annotations

import logging
from datetime import date

import pandas as pd
import streamlit as st

import auth
import dashboard
import db
import expenses
import members
import notifications
import plans
import seed
import trainers
import utils
from config import settings
from errors import GymError
from models import EXPENSE_STATUSES, MEMBER_STATUSES, PAYMENT_STATUSES, PLAN_STATUSES, TRAINER_ROLES, TRAINER_STATUSES

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

st.set_page_config(page_title="Gym Management System", layout="wide")

PAGE_SIZE = 20


def init_once():
    # Initialize DB + default admin if needed
    default_hash = auth.hash_password(settings.default_admin_password)
    db.init_db(default_hash)


def require_login():
    if "logged_in" not in st.session_state:
        st.session_state.logged_in = False
    if "username" not in st.session_state:
        st.session_state.username = None


def logout():
    st.session_state.logged_in = False
    st.session_state.username = None
    st.success("Logged out.")


def login_screen():
    st.title("🔐 Gym Login")

    col1, col2 = st.columns([1, 1])
    with col1:
        username = st.text_input("Username", value=settings.default_admin_username)
        password = st.text_input("Password", type="password")
        if st.button("Login", type="primary"):
            if auth.login(username.strip(), password):
                st.session_state.logged_in = True
                st.session_state.username = username.strip()
                st.rerun()
            else:
                st.error("Invalid username or password.")

    with col2:
        st.info(
            "First run creates a default user:\n\n"
            f"- username: **{settings.default_admin_username}**\n"
            f"- password: **{settings.default_admin_password}**\n\n"
            "You will be forced to change it on first login."
        )


def force_change_password_screen():
    st.title("⚠️ Change Password (Required)")

    st.warning("You must change the default password before using the app.")
    new1 = st.text_input("New password", type="password")
    new2 = st.text_input("Confirm new password", type="password")

    if st.button("Update password", type="primary"):
        try:
            auth.change_password(st.session_state.username, new1, new2)
        except GymError as e:
            st.error(str(e))
            return
        st.success("Password updated. You can continue.")
        st.rerun()


# ---------- Helpers ----------

def records_frame(items, columns: list[str] | None = None) -> pd.DataFrame:
    if not items:
        return pd.DataFrame(columns=columns or [])
    return pd.DataFrame([vars(i) for i in items])


def pager(key: str, page: db.Page) -> None:
    st.caption(f"Page {page.page} of {max(page.total_pages, 1)} · {page.total} total")
    c1, c2, _ = st.columns([1, 1, 6])
    if c1.button("◀ Prev", key=f"{key}_prev", disabled=not page.has_previous_page):
        st.session_state[f"{key}_page"] = page.page - 1
        st.rerun()
    if c2.button("Next ▶", key=f"{key}_next", disabled=not page.has_next_page):
        st.session_state[f"{key}_page"] = page.page + 1
        st.rerun()


def run_action(action, success: str) -> bool:
    """Run a create/update/delete, showing domain errors instead of a traceback."""
    try:
        action()
    except GymError as e:
        st.error(str(e))
        return False
    st.success(success)
    return True


# ---------- Pages ----------

def dashboard_page():
    st.header("📊 Dashboard")

    members.refresh_member_statuses()

    period = st.selectbox("Period", list(dashboard.PERIODS), index=0)
    data = dashboard.load_dashboard(date.today(), period)
    ov = data["overview"]

    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Revenue", f"{ov.revenue:.2f}", f"{ov.revenue_change:.1f}%")
    c2.metric("New customers", ov.new_customers, f"{ov.customers_change:.1f}%")
    c3.metric("Active accounts", ov.active_accounts, f"{ov.accounts_change:.1f}%")
    c4.metric("Growth rate", f"{ov.growth_rate:.1f}%", f"{ov.growth_change:.1f}%")

    st.divider()

    st.subheader("Revenue / expenses / profit (last 12 months)")
    fin = data["financial"]
    st.bar_chart(fin.set_index("period")[["revenue", "expenses", "profit"]])

    st.subheader("Payments received / due (last 12 months)")
    st.bar_chart(data["payments"].set_index("period")[["received", "due"]])

    st.divider()

    st.subheader("Expiring this month")
    expiring = data["expiring"]
    if expiring:
        st.dataframe(records_frame(expiring), use_container_width=True, hide_index=True)
    else:
        st.caption("No memberships expire this month.")


def member_form(existing=None):
    if existing:
        st.subheader(f"✏️ Edit Member ({existing.member_id})")
    else:
        st.subheader("➕ Add Member")

    plan_names = [p.name for p in plans.all_plans()]
    if existing and existing.membership_type not in plan_names:
        plan_names.append(existing.membership_type)
    if not plan_names:
        st.info("Add a membership plan first.")
        return

    col1, col2, col3 = st.columns(3)
    with col1:
        name = st.text_input("Name", value=(existing.name if existing else ""))
        email = st.text_input("Email (optional)", value=((existing.email or "") if existing else ""))
        phone = st.text_input("Phone", value=(existing.phone if existing else ""))

    with col2:
        membership_type = st.selectbox(
            "Membership plan",
            options=plan_names,
            index=(plan_names.index(existing.membership_type) if existing else 0),
        )
        join_date = st.date_input(
            "Join date", value=(utils.parse_iso(existing.join_date) if existing else date.today())
        ).isoformat()

        if existing:
            unchanged = (join_date, membership_type) == (existing.join_date, existing.membership_type)
            auto_expiry = existing.expiry_date if unchanged else plans.compute_expiry(join_date, membership_type)
        else:
            preview_id, auto_expiry = members.preview_member(join_date, membership_type)
            st.caption(f"Member ID (assigned on save): **{preview_id}**")
        expiry_date = st.date_input(
            "Expiry date (auto-calculated, editable)",
            value=utils.parse_iso(auto_expiry),
        ).isoformat()

    with col3:
        status = st.selectbox(
            "Status", options=list(MEMBER_STATUSES),
            index=(MEMBER_STATUSES.index(existing.status) if existing else 0),
        )
        payment_status = st.selectbox(
            "Payment status", options=list(PAYMENT_STATUSES),
            index=(PAYMENT_STATUSES.index(existing.payment_status) if existing else 1),
        )
        payment_amount = st.text_input(
            "Payment amount", value=(str(existing.payment_amount) if existing else "0")
        )

    if st.button("Save", type="primary"):
        data = {
            "name": name,
            "email": email,
            "phone": phone,
            "membership_type": membership_type,
            "join_date": join_date,
            "expiry_date": expiry_date,
            "status": status,
            "payment_status": payment_status,
            "payment_amount": payment_amount,
        }
        if existing:
            ok = run_action(lambda: members.update_member(existing.member_id, data), "Member updated.")
        else:
            ok = run_action(lambda: members.create_member(data), "Member added.")
        if ok:
            st.session_state.edit_member_id = None
            st.rerun()


def members_page():
    st.header("👥 Members")

    members.refresh_member_statuses()

    with st.sidebar:
        st.subheader("Search")
        search = st.text_input("Search (name/email/member ID)")

    page = members.list_members(st.session_state.get("members_page", 1), PAGE_SIZE, search)
    st.dataframe(records_frame(page.items), use_container_width=True, hide_index=True)
    pager("members", page)

    st.divider()

    colA, colB = st.columns([1, 2])
    with colA:
        st.subheader("Select member")
        selected_id = st.selectbox("Member ID", options=["(none)"] + [m.member_id for m in page.items])

    with colB:
        if selected_id != "(none)":
            st.subheader("Member actions")
            c1, c2 = st.columns(2)
            with c1:
                if st.button("Edit"):
                    st.session_state.edit_member_id = selected_id
                    st.rerun()
            with c2:
                delete_confirm = st.checkbox("Confirm delete", value=False, key="del_member_confirm")
                if st.button("Delete", type="secondary", disabled=not delete_confirm):
                    if run_action(lambda: members.delete_member(selected_id), "Member deleted."):
                        st.rerun()

    st.divider()

    if st.session_state.get("edit_member_id"):
        try:
            member_form(existing=members.get_member(st.session_state.edit_member_id))
        except GymError as e:
            st.error(str(e))
        if st.button("Cancel edit"):
            st.session_state.edit_member_id = None
            st.rerun()
    else:
        member_form(existing=None)


def plans_page():
    st.header("📋 Membership Plans")

    page = plans.list_plans(st.session_state.get("plans_page", 1), PAGE_SIZE)
    st.dataframe(records_frame(page.items), use_container_width=True, hide_index=True)
    pager("plans", page)

    st.divider()

    st.subheader("➕ Add plan")
    c1, c2, c3 = st.columns(3)
    with c1:
        name = st.text_input("Plan name")
        price = st.text_input("Price", value="0")
    with c2:
        duration = st.text_input("Duration", value="1 month", help='e.g. "1 month", "3 months", "1 year"')
        status = st.selectbox("Status", list(PLAN_STATUSES))
    with c3:
        features = st.text_area("Features")
    if st.button("Create plan", type="primary"):
        data = {"name": name, "price": price, "duration": duration, "features": features, "status": status}
        if run_action(lambda: plans.create_plan(data), "Plan created."):
            st.rerun()

    st.divider()

    st.subheader("Edit / delete plan")
    options = {f"{p.name} (ID {p.id})": p for p in page.items}
    if not options:
        st.caption("No plans yet.")
        return
    plan = options[st.selectbox("Plan", list(options.keys()))]
    c1, c2 = st.columns(2)
    with c1:
        new_price = st.text_input("New price", value=str(plan.price), key="plan_edit_price")
        new_duration = st.text_input("New duration", value=plan.duration, key="plan_edit_duration")
        new_status = st.selectbox(
            "New status", list(PLAN_STATUSES), index=PLAN_STATUSES.index(plan.status), key="plan_edit_status"
        )
        if st.button("Update plan"):
            data = {"price": new_price, "duration": new_duration, "status": new_status}
            if run_action(lambda: plans.update_plan(plan.id, data), "Plan updated."):
                st.rerun()
    with c2:
        confirm = st.checkbox("Confirm delete", value=False, key="del_plan_confirm")
        if st.button("Delete plan", disabled=not confirm):
            if run_action(lambda: plans.delete_plan(plan.id), "Plan deleted."):
                st.rerun()


def trainers_page():
    st.header("🧑‍🏫 Trainers & Staff")

    search = st.text_input("Search (name/email/phone)", key="trainer_search")
    page = trainers.list_trainers(st.session_state.get("trainers_page", 1), PAGE_SIZE, search)
    st.dataframe(records_frame(page.items), use_container_width=True, hide_index=True)
    pager("trainers", page)

    st.divider()

    st.subheader("➕ Add trainer / staff")
    c1, c2, c3 = st.columns(3)
    with c1:
        name = st.text_input("Name", key="trainer_name")
        email = st.text_input("Email (optional)", key="trainer_email")
    with c2:
        phone = st.text_input("Phone", key="trainer_phone")
        role = st.selectbox("Role", list(TRAINER_ROLES))
    with c3:
        hire_date = st.date_input("Hire date", value=date.today()).isoformat()
        status = st.selectbox("Status", list(TRAINER_STATUSES), key="trainer_status")
    if st.button("Add", type="primary"):
        data = {"name": name, "email": email, "phone": phone, "role": role, "hire_date": hire_date, "status": status}
        if run_action(lambda: trainers.create_trainer(data), "Trainer added."):
            st.rerun()

    options = {f"{t.name} ({t.role}) - ID {t.id}": t for t in page.items}
    if options:
        st.divider()
        trainer = options[st.selectbox("Trainer", list(options.keys()))]
        c1, c2 = st.columns(2)
        with c1:
            new_status = st.selectbox(
                "Set status", list(TRAINER_STATUSES),
                index=TRAINER_STATUSES.index(trainer.status), key="trainer_edit_status",
            )
            if st.button("Update trainer"):
                if run_action(lambda: trainers.update_trainer(trainer.id, {"status": new_status}), "Trainer updated."):
                    st.rerun()
        with c2:
            confirm = st.checkbox("Confirm delete", value=False, key="del_trainer_confirm")
            if st.button("Delete trainer", disabled=not confirm):
                if run_action(lambda: trainers.delete_trainer(trainer.id), "Trainer deleted."):
                    st.rerun()


def expenses_page():
    st.header("💳 Expenses")

    search = st.text_input("Search (category/description/vendor)", key="expense_search")
    page = expenses.list_expenses(st.session_state.get("expenses_page", 1), PAGE_SIZE, search)
    st.dataframe(records_frame(page.items), use_container_width=True, hide_index=True)
    pager("expenses", page)

    st.divider()

    st.subheader("Record expense")
    c1, c2, c3, c4 = st.columns([1, 1, 1, 2])
    with c1:
        category = st.text_input("Category", value="Rent")
        amount = st.text_input("Amount", value="0")
    with c2:
        exp_date = st.date_input("Date", value=date.today()).isoformat()
        status = st.selectbox("Status", list(EXPENSE_STATUSES), index=EXPENSE_STATUSES.index("pending"))
    with c3:
        vendor = st.text_input("Vendor (optional)")
    with c4:
        description = st.text_input("Description")

    if st.button("Record expense", type="primary"):
        data = {
            "category": category, "amount": amount, "date": exp_date,
            "status": status, "vendor": vendor, "description": description,
        }
        if run_action(lambda: expenses.create_expense(data), "Expense recorded."):
            st.rerun()

    options = {f"{e.date} · {e.category} · {e.amount:.2f} - ID {e.id}": e for e in page.items}
    if options:
        st.divider()
        expense = options[st.selectbox("Expense", list(options.keys()))]
        c1, c2 = st.columns(2)
        with c1:
            new_status = st.selectbox(
                "Set status", list(EXPENSE_STATUSES),
                index=EXPENSE_STATUSES.index(expense.status), key="expense_edit_status",
            )
            if st.button("Update expense"):
                if run_action(lambda: expenses.update_expense(expense.id, {"status": new_status}), "Expense updated."):
                    st.rerun()
        with c2:
            confirm = st.checkbox("Confirm delete", value=False, key="del_expense_confirm")
            if st.button("Delete expense", disabled=not confirm):
                if run_action(lambda: expenses.delete_expense(expense.id), "Expense deleted."):
                    st.rerun()


def notifications_page():
    st.header("🔔 Notifications")

    notifications.delete_older_than(7)
    notifications.ensure_overdue_notifications()

    unread_only = st.toggle("Unread only", value=False)
    if st.button("Mark all as read"):
        notifications.mark_all_read()
        st.rerun()

    items = notifications.list_notifications(unread_only=unread_only)
    if not items:
        st.caption("No notifications.")
        return

    icons = {"info": "ℹ️", "success": "✅", "warning": "⚠️", "error": "❌"}
    for n in items:
        c1, c2, c3 = st.columns([6, 1, 1])
        marker = "" if n.read else " **(new)**"
        c1.markdown(f"{icons[n.type]} **{n.title}**{marker}  \n{n.message}  \n_{n.created_at}_")
        if not n.read and c2.button("Read", key=f"read_{n.id}"):
            notifications.mark_read(n.id)
            st.rerun()
        if c3.button("Delete", key=f"del_notif_{n.id}"):
            notifications.delete_notification(n.id)
            st.rerun()


def reports_page():
    st.header("🧾 Reports")

    st.subheader("Export members to CSV")
    all_members = members.all_members()
    if all_members:
        st.download_button(
            "Download members.csv",
            data=utils.rows_to_csv_bytes(all_members),
            file_name="members.csv",
            mime="text/csv",
        )
    else:
        st.caption("No members to export.")

    st.divider()

    st.subheader("Export expenses to CSV")
    all_expenses = expenses.all_expenses()
    if all_expenses:
        st.download_button(
            "Download expenses.csv",
            data=utils.rows_to_csv_bytes(all_expenses),
            file_name="expenses.csv",
            mime="text/csv",
        )
    else:
        st.caption("No expenses to export.")

    st.divider()

    st.subheader("Financial summary (last 12 months)")
    st.dataframe(
        dashboard.financial_series(all_members, all_expenses, date.today()),
        use_container_width=True, hide_index=True,
    )

    st.subheader("Payments by join month (last 12 months)")
    payments = dashboard.payments_series(all_members, date.today())
    st.dataframe(payments, use_container_width=True, hide_index=True)
    st.download_button(
        "Download payments.csv",
        data=payments.to_csv(index=False).encode("utf-8"),
        file_name="payments.csv",
        mime="text/csv",
    )


def settings_page():
    st.header("⚙️ Settings")

    st.subheader("Change password")
    p1 = st.text_input("New password", type="password")
    p2 = st.text_input("Confirm new password", type="password")
    if st.button("Update password", type="primary"):
        run_action(lambda: auth.change_password(st.session_state.username, p1, p2), "Password updated.")

    st.divider()

    st.subheader("Add user")
    new_user = st.text_input("Username", key="new_user")
    new_pw = st.text_input("Password", type="password", key="new_user_pw")
    if st.button("Create user"):
        run_action(lambda: auth.register_user(new_user, new_pw), "User created.")

    st.divider()

    st.subheader("Sample data")
    st.caption("Insert standard plans, 3 sample members, a trainer and a few expenses (adds new rows each run).")
    if st.button("Insert sample data"):
        if run_action(seed.insert_sample_data, "Sample data inserted."):
            st.rerun()


PAGES = {
    "Dashboard": dashboard_page,
    "Members": members_page,
    "Membership Plans": plans_page,
    "Trainers & Staff": trainers_page,
    "Expenses": expenses_page,
    "Notifications": notifications_page,
    "Reports": reports_page,
    "Settings": settings_page,
}


def main_app():
    st.sidebar.title("🏋️ Gym System")
    st.sidebar.caption(f"Logged in as: {st.session_state.username}")

    pages = list(PAGES.keys())
    if "page" not in st.session_state:
        st.session_state.page = "Dashboard"
    unread = notifications.unread_count()
    st.session_state.page = st.sidebar.radio(
        "Navigate", pages, index=pages.index(st.session_state.page),
        format_func=lambda p: f"{p} ({unread})" if p == "Notifications" and unread else p,
    )

    if st.sidebar.button("Logout"):
        logout()
        st.rerun()

    try:
        PAGES[st.session_state.page]()
    except GymError as e:
        st.error(str(e))


# --------- App entry ---------

def run():
    init_once()
    require_login()

    if not st.session_state.logged_in:
        login_screen()
        return

    # Force password change on first login after DB creation
    if db.is_force_password_change():
        force_change_password_screen()
        return

    main_app()


if __name__ == "__main__":
    run()
