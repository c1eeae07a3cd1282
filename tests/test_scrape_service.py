import asyncio

from app.core.config import Settings
from app.core.database import SessionLocal
from app.models.project import Project
from app.models.search_term import SearchTerm
from app.models.temp_scraped_lead import TempScrapedLead
from app.services import activity_log, scrape_service
from app.services.places_service import PlacesAPIError

from conftest import FakeProvider, make_places


def _terms(db, project_id):
    return (
        db.query(SearchTerm)
        .filter(SearchTerm.project_id == project_id)
        .order_by(SearchTerm.position)
        .all()
    )


def _project(db, project_id):
    db.rollback()
    return db.query(Project).filter(Project.id == project_id).one()


class TestTruncateMessage:
    def test_short_message_unchanged(self):
        assert scrape_service.truncate_message("quota exceeded") == "quota exceeded"

    def test_long_message_truncated(self):
        message = scrape_service.truncate_message("x" * 500)
        assert message == "x" * 200 + "..."


class TestStartAndReset:
    def test_start_marks_project_scraping(self, db, make_project):
        project = make_project("coffee", "tea")
        project_id = project.id

        run_id = scrape_service.start_scrape(db, project)

        project = _project(db, project_id)
        assert project.status == "scraping"
        assert project.scrape_run_id == run_id
        assert project.temp_leads_count == 0
        assert project.leads_processed is False
        assert all(t.status == "pending" for t in _terms(db, project_id))
        assert activity_log.get_logs(project_id)[0]["step"] == "starting"

    def test_reset_returns_stuck_project_to_draft(self, db, make_project):
        project = make_project("coffee", "tea")
        project_id = project.id
        scrape_service.start_scrape(db, project)
        project.search_terms[0].status = "scraping"
        project.search_terms[0].progress_message = "Searching for: coffee"
        db.commit()

        scrape_service.reset_project(db, project)

        project = _project(db, project_id)
        assert project.status == "draft"
        assert project.scrape_run_id is None
        for term in _terms(db, project_id):
            assert term.status == "pending"
            assert term.progress_message is None
            assert term.leads_count == 0


class TestRunScrape:
    def test_failing_term_does_not_fail_project(self, db, make_project):
        project = make_project("coffee", "tea")
        project_id = project.id
        run_id = scrape_service.start_scrape(db, project)

        provider = FakeProvider()
        provider.results["coffee"] = make_places("Blue Bottle", "Ritual", "Sightglass")
        provider.results["tea"] = PlacesAPIError("Google Places API quota exceeded. Please try again later.")

        asyncio.run(scrape_service.run_scrape(project_id, run_id, provider, Settings(SCRAPE_TIMEOUT_SECONDS=30)))

        project = _project(db, project_id)
        t1, t2 = _terms(db, project_id)
        assert t1.status == "completed"
        assert t1.leads_count == 3
        assert t1.progress_message == "Scraped 3 leads - ready to process"
        assert t2.status == "failed"
        assert t2.progress_message == "Error: Google Places API quota exceeded. Please try again later."
        assert project.status == "completed"
        assert project.temp_leads_count == 3
        assert project.leads_processed is False
        assert project.scrape_run_id is None
        assert provider.calls == ["coffee", "tea"]

    def test_staged_rows_reference_their_term(self, db, make_project):
        project = make_project("coffee")
        project_id = project.id
        run_id = scrape_service.start_scrape(db, project)

        provider = FakeProvider()
        provider.results["coffee"] = make_places("Blue Bottle", "Ritual")

        asyncio.run(scrape_service.run_scrape(project_id, run_id, provider, Settings(SCRAPE_TIMEOUT_SECONDS=0)))

        db.rollback()
        term = _terms(db, project_id)[0]
        staged = db.query(TempScrapedLead).filter(TempScrapedLead.project_id == project_id).all()
        assert {s.business_name for s in staged} == {"Blue Bottle", "Ritual"}
        assert all(s.search_term_id == term.id and s.processed is False for s in staged)

    def test_long_error_message_is_truncated(self, db, make_project):
        project = make_project("coffee")
        project_id = project.id
        run_id = scrape_service.start_scrape(db, project)

        provider = FakeProvider()
        provider.results["coffee"] = RuntimeError("boom " * 100)

        asyncio.run(scrape_service.run_scrape(project_id, run_id, provider, Settings(SCRAPE_TIMEOUT_SECONDS=0)))

        db.rollback()
        term = _terms(db, project_id)[0]
        assert term.status == "failed"
        assert term.progress_message.endswith("...")
        assert len(term.progress_message) == len("Error: ") + 200 + 3

    def test_top_level_failure_keeps_partial_count(self, db, make_project):
        project = make_project("coffee", "tea")
        project_id = project.id
        run_id = scrape_service.start_scrape(db, project)

        provider = FakeProvider()
        provider.results["coffee"] = make_places("Blue Bottle", "Ritual")
        # Not a place record: staging it blows up outside the per-term handler
        provider.results["tea"] = [object()]

        asyncio.run(scrape_service.run_scrape(project_id, run_id, provider, Settings(SCRAPE_TIMEOUT_SECONDS=0)))

        project = _project(db, project_id)
        assert project.status == "failed"
        assert project.temp_leads_count == 2
        assert project.scrape_run_id is None

    def test_guard_timer_fails_in_flight_run(self, db, make_project):
        project = make_project("slow", "never reached")
        project_id = project.id
        run_id = scrape_service.start_scrape(db, project)

        provider = FakeProvider()
        provider.delays["slow"] = 5

        asyncio.run(scrape_service.run_scrape(project_id, run_id, provider, Settings(SCRAPE_TIMEOUT_SECONDS=0.2)))

        project = _project(db, project_id)
        slow, unreached = _terms(db, project_id)
        assert project.status == "failed"
        assert project.scrape_run_id is None
        assert slow.status == "failed"
        assert slow.progress_message == "Scraping timed out after 0.2 seconds"
        assert unreached.status == "pending"
        assert provider.calls == ["slow"]

    def test_timed_out_run_counts_only_its_own_rows(self, db, make_project):
        project = make_project("fast", "slow")
        project_id = project.id
        # Left behind by an earlier run that was reset before processing
        db.add_all(
            [
                TempScrapedLead(project_id=project_id, business_name=f"Old {i}", processed=False)
                for i in range(5)
            ]
        )
        db.commit()
        run_id = scrape_service.start_scrape(db, project)

        provider = FakeProvider()
        provider.results["fast"] = make_places("Blue Bottle", "Ritual")
        provider.delays["slow"] = 5

        asyncio.run(scrape_service.run_scrape(project_id, run_id, provider, Settings(SCRAPE_TIMEOUT_SECONDS=0.3)))

        project = _project(db, project_id)
        fast, slow = _terms(db, project_id)
        assert project.status == "failed"
        assert project.temp_leads_count == 2
        assert fast.status == "completed"
        assert slow.status == "failed"

    def test_reset_during_run_discards_late_writes(self, db, make_project):
        project = make_project("coffee", "tea")
        project_id = project.id
        run_id = scrape_service.start_scrape(db, project)

        class ResettingProvider(FakeProvider):
            async def search(self, query):
                session = SessionLocal()
                try:
                    stuck = session.query(Project).filter(Project.id == project_id).one()
                    scrape_service.reset_project(session, stuck)
                finally:
                    session.close()
                return make_places("Blue Bottle")

        provider = ResettingProvider()
        asyncio.run(scrape_service.run_scrape(project_id, run_id, provider, Settings(SCRAPE_TIMEOUT_SECONDS=0)))

        project = _project(db, project_id)
        assert project.status == "draft"
        assert project.temp_leads_count == 0
        assert all(t.status == "pending" and t.progress_message is None for t in _terms(db, project_id))
        assert db.query(TempScrapedLead).filter(TempScrapedLead.project_id == project_id).count() == 0

    def test_stale_run_token_writes_nothing(self, db, make_project):
        project = make_project("coffee")
        project_id = project.id
        stale_run = scrape_service.start_scrape(db, project)
        scrape_service.reset_project(db, project)
        current_run = scrape_service.start_scrape(db, project)
        assert current_run != stale_run

        provider = FakeProvider()
        provider.results["coffee"] = make_places("Blue Bottle")
        session = SessionLocal()
        try:
            staged = asyncio.run(scrape_service.scrape_project(project_id, stale_run, provider, session))
        finally:
            session.close()

        project = _project(db, project_id)
        assert staged == 0
        assert project.status == "scraping"
        assert project.scrape_run_id == current_run
        assert _terms(db, project_id)[0].status == "pending"
        assert provider.calls == []

    def test_expire_run_ignores_superseded_run(self, db, make_project):
        project = make_project("coffee")
        project_id = project.id
        run_id = scrape_service.start_scrape(db, project)
        scrape_service.reset_project(db, project)

        assert scrape_service.expire_run(db, project_id, run_id, "Scraping timed out after 1 seconds") is False
        assert _project(db, project_id).status == "draft"
