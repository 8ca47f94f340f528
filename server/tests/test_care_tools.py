"""Tests for the read-only care lookup tools."""

from datetime import datetime, timedelta
from unittest.mock import AsyncMock

import pytest
from app.tools.care_tools import (
    SUMMARY_EXCERPT_CHARS,
    appointment_window,
    excerpt,
    get_appointments,
    get_contacts,
    get_documents,
    get_recent_activities,
    get_tasks,
    speak_time,
)
from conftest import EMPTY_GROUP_ID, GROUP_ID


class TestAppointments:
    """Test get_appointments."""

    @pytest.mark.asyncio
    async def test_upcoming_sorted_ascending_and_scoped(self, db_session):
        result = await get_appointments(db_session, GROUP_ID)

        assert result.startswith("Upcoming appointments: ")
        assert result.index("Cardiology follow-up") < result.index("Eye exam")
        assert "(medical) at 12 Elm Street" in result
        assert "Dental cleaning" not in result
        assert "Cancelled podiatry" not in result
        assert "Other group physio" not in result

    @pytest.mark.asyncio
    async def test_past_appointments(self, db_session):
        result = await get_appointments(db_session, GROUP_ID, timeframe="past")

        assert result.startswith("Recent appointments: ")
        assert "Dental cleaning" in result
        assert "Cardiology follow-up" not in result

    @pytest.mark.asyncio
    async def test_week_excludes_later_appointments(self, db_session):
        result = await get_appointments(db_session, GROUP_ID, timeframe="week")

        assert "Cardiology follow-up" in result
        assert "Eye exam" not in result

    @pytest.mark.asyncio
    async def test_no_results_sentence(self, db_session):
        result = await get_appointments(db_session, EMPTY_GROUP_ID)
        assert result == "No upcoming appointments found."

    @pytest.mark.asyncio
    async def test_unknown_timeframe_falls_back_to_upcoming(self, db_session):
        result = await get_appointments(db_session, GROUP_ID, timeframe="someday")
        assert result.startswith("Upcoming appointments: ")

    @pytest.mark.asyncio
    async def test_store_failure_returns_apology(self):
        db = AsyncMock()
        db.execute.side_effect = RuntimeError("connection lost")

        result = await get_appointments(db, GROUP_ID)

        assert result == "Sorry, I could not retrieve appointment information at this time."


class TestAppointmentWindow:
    """Test timeframe to date window mapping."""

    def test_upcoming_is_sixty_days(self):
        now = datetime(2024, 3, 1, 15, 0)
        assert appointment_window("upcoming", now) == (now, now + timedelta(days=60))

    def test_past_is_thirty_days(self):
        now = datetime(2024, 3, 1, 15, 0)
        assert appointment_window("past", now) == (now - timedelta(days=30), now)

    def test_today_is_calendar_day(self):
        now = datetime(2024, 3, 1, 15, 0)
        start, end = appointment_window("today", now)
        assert start == datetime(2024, 3, 1)
        assert end == datetime(2024, 3, 2)

    def test_tomorrow_is_next_calendar_day(self):
        now = datetime(2024, 3, 1, 23, 30)
        start, end = appointment_window("tomorrow", now)
        assert start == datetime(2024, 3, 2)
        assert end == datetime(2024, 3, 3)


class TestTasks:
    """Test get_tasks."""

    @pytest.mark.asyncio
    async def test_open_tasks_due_date_order_nulls_last(self, db_session):
        result = await get_tasks(db_session, GROUP_ID, status="open")

        assert result.startswith("Open tasks: ")
        assert result.index("Refill prescriptions") < result.index("Insurance forms")
        assert result.index("Insurance forms") < result.index("Sort mail")
        assert "Book ride to clinic" not in result
        assert "Other group task" not in result

    @pytest.mark.asyncio
    async def test_assignee_and_non_default_priority(self, db_session):
        result = await get_tasks(db_session, GROUP_ID)

        assert "assigned to Dana Lee" in result
        assert "(high priority)" in result
        assert "medium priority" not in result

    @pytest.mark.asyncio
    async def test_completed_tasks(self, db_session):
        result = await get_tasks(db_session, GROUP_ID, status="completed")

        assert result.startswith("Completed tasks: ")
        assert "Book ride to clinic" in result
        assert "Sort mail" not in result

    @pytest.mark.asyncio
    async def test_all_tasks(self, db_session):
        result = await get_tasks(db_session, GROUP_ID, status="all")

        assert "Book ride to clinic" in result
        assert "Sort mail" in result

    @pytest.mark.asyncio
    async def test_no_open_tasks(self, db_session):
        assert await get_tasks(db_session, EMPTY_GROUP_ID, status="open") == "No open tasks found."
        assert await get_tasks(db_session, EMPTY_GROUP_ID, status="all") == "No tasks found."

    @pytest.mark.asyncio
    async def test_store_failure_returns_apology(self):
        db = AsyncMock()
        db.execute.side_effect = RuntimeError("connection lost")

        result = await get_tasks(db, GROUP_ID)

        assert result == "Sorry, I could not retrieve task information at this time."


class TestDocuments:
    """Test get_documents."""

    @pytest.mark.asyncio
    async def test_only_summarized_documents(self, db_session):
        result = await get_documents(db_session, GROUP_ID)

        assert result.startswith("Documents: ")
        assert "Lab Results March" in result
        assert "Discharge summary" in result
        assert "Lab scan pending" not in result

    @pytest.mark.asyncio
    async def test_search_is_case_insensitive(self, db_session):
        result = await get_documents(db_session, GROUP_ID, search_term="LAB")

        assert "Lab Results March" in result
        assert "Discharge summary" not in result

    @pytest.mark.asyncio
    async def test_summary_excerpt_truncated(self, db_session):
        result = await get_documents(db_session, GROUP_ID, search_term="labs.pdf")

        summary_part = result.split(" - ", 1)[1]
        assert summary_part.endswith("....")
        assert len(summary_part) <= SUMMARY_EXCERPT_CHARS + len("....")

    @pytest.mark.asyncio
    async def test_no_match(self, db_session):
        result = await get_documents(db_session, GROUP_ID, search_term="x-ray")
        assert result == 'No documents found matching "x-ray".'

    @pytest.mark.asyncio
    async def test_wildcards_match_literally(self, db_session):
        assert await get_documents(db_session, GROUP_ID, search_term="%") == (
            'No documents found matching "%".'
        )
        assert await get_documents(db_session, GROUP_ID, search_term="lab_") == (
            'No documents found matching "lab_".'
        )

    @pytest.mark.asyncio
    async def test_store_failure_returns_apology(self):
        db = AsyncMock()
        db.execute.side_effect = RuntimeError("connection lost")

        result = await get_documents(db, GROUP_ID, search_term="lab")

        assert result == "Sorry, I could not retrieve document information at this time."


class TestContacts:
    """Test get_contacts."""

    @pytest.mark.asyncio
    async def test_filter_by_type(self, db_session):
        result = await get_contacts(db_session, GROUP_ID, type="doctor")

        assert result == "Contacts: Alan Patel (Cardiologist) at 555-0100."

    @pytest.mark.asyncio
    async def test_filter_matches_organization(self, db_session):
        result = await get_contacts(db_session, GROUP_ID, type="main street")

        assert "Main Street Pharmacy (pharmacy) at 555-0200" in result

    @pytest.mark.asyncio
    async def test_all_means_no_filter(self, db_session):
        result = await get_contacts(db_session, GROUP_ID, type="all")

        assert "Alan Patel" in result
        assert "Main Street Pharmacy" in result
        assert "Old Doctor" not in result

    @pytest.mark.asyncio
    async def test_no_contacts(self, db_session):
        assert await get_contacts(db_session, EMPTY_GROUP_ID) == "No contacts found."

    @pytest.mark.asyncio
    async def test_wildcards_match_literally(self, db_session):
        result = await get_contacts(db_session, GROUP_ID, type="_")
        assert result == 'No contacts found for "_".'

    @pytest.mark.asyncio
    async def test_store_failure_returns_apology(self):
        db = AsyncMock()
        db.execute.side_effect = RuntimeError("connection lost")

        result = await get_contacts(db, GROUP_ID, type="doctor")

        assert result == "Sorry, I could not retrieve contact information at this time."


class TestRecentActivities:
    """Test get_recent_activities."""

    @pytest.mark.asyncio
    async def test_seven_day_lookback(self, db_session):
        result = await get_recent_activities(db_session, GROUP_ID)

        assert result.startswith("Recent activities: Home visit on ")
        assert "Blood pressure normal, appetite good" in result
        assert "Phone check-in" not in result

    @pytest.mark.asyncio
    async def test_no_activities(self, db_session):
        result = await get_recent_activities(db_session, EMPTY_GROUP_ID)
        assert result == "No recent activities found."

    @pytest.mark.asyncio
    async def test_store_failure_returns_apology(self):
        db = AsyncMock()
        db.execute.side_effect = RuntimeError("connection lost")

        result = await get_recent_activities(db, GROUP_ID)

        assert result == "Sorry, I could not retrieve activity information at this time."


class TestFormatting:
    """Test speech formatting helpers."""

    def test_excerpt_short_text_untouched(self):
        assert excerpt("Short  note", 50) == "Short note"

    def test_excerpt_truncates(self):
        assert excerpt("a" * 60, 50) == "a" * 50 + "..."

    def test_speak_time(self):
        assert speak_time(datetime(2024, 3, 1, 14, 5)) == "2:05 PM"
        assert speak_time(datetime(2024, 3, 1, 0, 30)) == "12:30 AM"
