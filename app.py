"""
ICHRA Quote Engine - Main Application
Streamlit page for benefits consultants to quote a group census against the
Individual marketplace and compare ICHRA costs with the current plan
"""

import sys
import os
import logging
from decimal import Decimal
from pathlib import Path

# Configure logging BEFORE importing streamlit
logging.basicConfig(
    level=os.getenv('LOG_LEVEL', 'INFO').upper(),
    format='%(asctime)s %(levelname)s: %(message)s',
    datefmt='%H:%M:%S',
    force=True  # Override any existing config
)
logging.info("APP STARTUP: Logging initialized")

import pandas as pd
import streamlit as st

# Add current directory to path for imports
sys.path.insert(0, str(Path(__file__).parent))

from census_schema import members_from_census
from config import QuoteConfig
from constants import APP_CONFIG, METAL_LEVELS, MARKETS
from database import get_database_connection, test_connection
from errors import QuoteEngineError, ReferenceDataError
from quote_export import quote_to_dataframe, export_quote_csv, aggregate_selected_plans
from quote_orchestrator import QuoteOrchestrator
from quote_types import IchraClass, QuoteFilters
from reference_data import ReferenceData

logger = logging.getLogger(__name__)


# Page configuration
st.set_page_config(
    page_title=APP_CONFIG['title'],
    page_icon=APP_CONFIG['icon'],
    layout=APP_CONFIG['layout'],
    initial_sidebar_state=APP_CONFIG['initial_sidebar_state']
)


@st.cache_resource
def load_reference_data(reference_dir):
    """Reference data from CSV extracts when a directory is configured, else PostgreSQL"""
    if reference_dir:
        return ReferenceData.from_csv_directory(reference_dir)
    return ReferenceData.from_database(get_database_connection())


@st.cache_resource
def get_orchestrator(reference_dir):
    config = QuoteConfig.from_environment()
    return QuoteOrchestrator(load_reference_data(reference_dir), config=config)


def initialize_session_state():
    """Initialize session state variables"""

    # Employee census data
    if 'census_df' not in st.session_state:
        st.session_state.census_df = None

    # ICHRA classes keyed by class id
    if 'classes' not in st.session_state:
        st.session_state.classes = {}

    # Latest group quote
    if 'quote_result' not in st.session_state:
        st.session_state.quote_result = None


def show_class_editor():
    """One employee/dependent contribution pair per class id found in the census"""
    st.subheader("ICHRA Classes")
    census_df = st.session_state.census_df
    class_ids = sorted(census_df['class_id'].dropna().astype(str).unique()) if census_df is not None else []

    if not class_ids:
        st.info("Upload a census to configure classes")
        return

    for class_id in class_ids:
        existing = st.session_state.classes.get(class_id)
        col1, col2, col3 = st.columns([2, 1, 1])
        with col1:
            name = st.text_input("Class name", value=existing.name if existing else class_id,
                                 key=f"class_name_{class_id}")
        with col2:
            employee = st.number_input("Employee $/mo", min_value=0.0, step=25.0,
                                       value=float(existing.employee_contribution) if existing else 400.0,
                                       key=f"class_ee_{class_id}")
        with col3:
            dependent = st.number_input("Per dependent $/mo", min_value=0.0, step=25.0,
                                        value=float(existing.dependent_contribution) if existing else 0.0,
                                        key=f"class_dep_{class_id}")
        st.session_state.classes[class_id] = IchraClass(
            class_id=class_id,
            name=name,
            employee_contribution=Decimal(str(employee)),
            dependent_contribution=Decimal(str(dependent)),
        )


def show_filters(reference_data):
    st.sidebar.subheader("Plan Filters")
    carriers = sorted({plan.carrier for plan in reference_data.plans.values()})
    selected_carriers = st.sidebar.multiselect("Carriers", carriers)
    selected_levels = st.sidebar.multiselect("Metal levels", METAL_LEVELS)
    market = st.sidebar.selectbox("Market", ['all'] + MARKETS)
    return QuoteFilters.from_dict({
        'carriers': selected_carriers,
        'metal_levels': selected_levels,
        'market': market,
    })


def show_results(result):
    """Comparison summary, per-member table, error manifest and downloads"""
    if result.is_partial:
        st.warning(f"Partial quote: {len(result.errors)} members failed, "
                   f"{len(result.timed_out_member_ids)} timed out")

    st.subheader("Employer")
    col1, col2, col3 = st.columns(3)
    col1.metric("Current monthly cost", f"${result.employer.old_monthly_cost:,.2f}")
    col2.metric("ICHRA monthly cost", f"${result.employer.new_monthly_cost:,.2f}")
    col3.metric("Annual savings", f"${result.employer.annual_savings:,.2f}",
                f"{result.employer.savings_percentage}%")

    st.subheader("Employees")
    col1, col2, col3 = st.columns(3)
    col1.metric("Current monthly cost", f"${result.employees.old_monthly_cost:,.2f}")
    col2.metric("ICHRA monthly cost", f"${result.employees.new_monthly_cost:,.2f}")
    col3.metric("Average savings / member", f"${result.employees.average_savings_per_member:,.2f}")

    st.subheader("Subsidies")
    col1, col2 = st.columns(2)
    col1.metric("Subsidy eligible", f"{result.subsidy_analysis.eligible_count} "
                                    f"({result.subsidy_analysis.eligibility_rate}%)")
    col2.metric("Average monthly subsidy", f"${result.subsidy_analysis.average_subsidy:,.2f}")

    st.subheader("Members")
    st.dataframe(quote_to_dataframe(result), width="stretch", hide_index=True)

    st.subheader("Selected Plans")
    st.dataframe(aggregate_selected_plans(result), width="stretch", hide_index=True)

    if result.errors:
        st.subheader("Errors")
        st.dataframe(pd.DataFrame([e.to_dict() for e in result.errors]), width="stretch", hide_index=True)
    if result.timed_out_member_ids:
        st.caption(f"Timed out: {', '.join(result.timed_out_member_ids)}")

    st.download_button(
        "📥 Download comparison CSV",
        data=export_quote_csv(result),
        file_name=f"ichra_quote_{result.group_id}_{result.quote_date.isoformat()}.csv",
        mime="text/csv",
    )


def main():
    """Main application entry point"""
    initialize_session_state()

    config = QuoteConfig.from_environment()
    is_valid, error = config.validate()
    if not is_valid:
        st.error(f"Configuration error: {error}")
        return

    st.sidebar.title("📊 ICHRA Quote Engine")
    st.sidebar.markdown("---")

    try:
        orchestrator = get_orchestrator(config.reference_data_dir)
    except Exception as e:
        logging.error(f"Failed to load reference data: {e}")
        st.error(f"Could not load reference data: {e}")
        return

    reference_data = orchestrator.reference_data
    report = reference_data.report
    st.sidebar.metric("Plans", report.counts.get('plans', 0))
    st.sidebar.caption(f"Source: {report.source}")
    if report.total_skipped:
        st.sidebar.caption(f"{report.total_skipped:,} invalid reference rows skipped")

    if st.sidebar.button("🔄 Reload Reference Data"):
        with st.spinner("Reloading..."):
            try:
                reference_data.reload()
                st.sidebar.success("Reference data reloaded")
            except QuoteEngineError as e:
                st.sidebar.error(str(e))

    if not config.reference_data_dir and st.sidebar.button("🔌 Test Database Connection"):
        with st.sidebar:
            with st.spinner("Testing connection..."):
                if test_connection():
                    st.success("Database connected!")
                else:
                    st.error("Connection failed")

    filters = show_filters(reference_data)

    st.title(APP_CONFIG['title'])
    st.caption(f"Plan year {config.plan_year}")

    uploaded = st.file_uploader("Employee census (CSV)", type=['csv'])
    if uploaded is not None:
        st.session_state.census_df = pd.read_csv(uploaded, dtype=str, keep_default_na=False)
        st.sidebar.metric("Employees", len(st.session_state.census_df))

    if st.session_state.census_df is None:
        st.info("Upload a census to begin")
        return

    try:
        members, row_errors = members_from_census(st.session_state.census_df)
    except ValueError as e:
        st.error(str(e))
        return
    for row_error in row_errors:
        st.warning(row_error)

    show_class_editor()

    group_id = st.text_input("Group ID", value="group")
    if st.button("Run Quote", type="primary"):
        with st.spinner(f"Quoting {len(members)} members..."):
            try:
                st.session_state.quote_result = orchestrator.quote_group(
                    group_id, members, st.session_state.classes.values(), filters=filters
                )
            except ReferenceDataError as e:
                st.error(f"Reference data error: {e}")
                return
    elif st.session_state.quote_result is not None and st.session_state.quote_result.filters != filters:
        st.session_state.quote_result = orchestrator.apply_filters(st.session_state.quote_result, filters)

    if st.session_state.quote_result is not None:
        show_results(st.session_state.quote_result)


if __name__ == "__main__":
    main()
