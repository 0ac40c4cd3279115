"""
Role-scoped listing, pagination, dashboard aggregates and leaderboards.
"""
import pytest

import lifecycle
import models
import queries
from errors import ForbiddenError
from queries import ReportFilters


@pytest.fixture
def reports(db, community_user, other_community_user, ngo_user, report_payload):
    """
    A mix of reports:
        uma:  pending, approved+public, approved+private
        walt: pending, approved+public, rejected, under_investigation
    """
    def submit(user, title, decision=None, is_public=True, city="Mumbai"):
        report = lifecycle.submit_report(db, user, report_payload(title=title, is_public=is_public, city=city))
        if decision:
            lifecycle.validate_report(db, report.id, ngo_user, decision)
        return report

    return {
        "uma_pending": submit(community_user, "Uma pending report"),
        "uma_public": submit(community_user, "Uma approved public", "approved"),
        "uma_private": submit(community_user, "Uma approved private", "approved", is_public=False),
        "walt_pending": submit(other_community_user, "Walt pending report"),
        "walt_public": submit(other_community_user, "Walt approved public", "approved", city="Kochi"),
        "walt_private": submit(other_community_user, "Walt approved private", "approved", is_public=False),
        "walt_rejected": submit(other_community_user, "Walt rejected report", "rejected"),
        "walt_investigated": submit(other_community_user, "Walt investigated one", "under_investigation"),
    }


def ids(page):
    return {r.id for r in page.items}


class TestListScoping:
    def test_community_sees_own_and_public_approved(self, db, community_user, reports):
        page = queries.list_reports(db, community_user, page_size=100)

        expected = {reports[k].id for k in ("uma_pending", "uma_public", "uma_private", "walt_public")}
        assert ids(page) == expected
        assert page.total == 4
        for report in page.items:
            assert report.reporter_id == community_user.id or (
                report.status == models.ReportStatus.approved and report.is_public
            )

    def test_researcher_sees_only_approved(self, db, researcher_user, reports):
        page = queries.list_reports(db, researcher_user, page_size=100)

        assert page.total == 4
        assert all(r.status == models.ReportStatus.approved for r in page.items)

    @pytest.mark.parametrize("role_fixture", ["ngo_user", "government_user"])
    def test_admins_see_everything(self, request, db, reports, role_fixture):
        page = queries.list_reports(db, request.getfixturevalue(role_fixture), page_size=100)
        assert page.total == len(reports)

    def test_search_does_not_widen_community_scope(self, db, community_user, reports):
        page = queries.list_reports(db, community_user, ReportFilters(search="walt"), page_size=100)
        assert ids(page) == {reports["walt_public"].id}

    def test_search_matches_city_case_insensitively(self, db, ngo_user, reports):
        page = queries.list_reports(db, ngo_user, ReportFilters(search="KOCHI"))
        assert ids(page) == {reports["walt_public"].id}

    def test_search_treats_wildcards_literally(self, db, ngo_user, reports):
        page = queries.list_reports(db, ngo_user, ReportFilters(search="%"))
        assert page.total == 0
        assert page.items == []

    def test_blank_search_is_ignored(self, db, ngo_user, reports):
        assert queries.list_reports(db, ngo_user, ReportFilters(search="   ")).total == len(reports)

    def test_status_filter_intersects_scope(self, db, community_user, reports):
        page = queries.list_reports(db, community_user, ReportFilters(status=models.ReportStatus.pending))
        assert ids(page) == {reports["uma_pending"].id}

    def test_reporter_filter_within_scope(self, db, community_user, other_community_user, reports):
        page = queries.list_reports(db, community_user, ReportFilters(reporter_id=other_community_user.id))
        assert ids(page) == {reports["walt_public"].id}

    def test_category_filter(self, db, ngo_user, reports):
        assert queries.list_reports(db, ngo_user, ReportFilters(category=models.ReportCategory.cutting)).total == 0
        assert queries.list_reports(db, ngo_user, ReportFilters(category=models.ReportCategory.pollution)).total == 8


class TestPagination:
    def test_pages_walk_the_result_set(self, db, ngo_user, reports):
        first = queries.list_reports(db, ngo_user, page=1, page_size=3)
        second = queries.list_reports(db, ngo_user, page=2, page_size=3)
        last = queries.list_reports(db, ngo_user, page=3, page_size=3)

        assert (len(first.items), first.has_next, first.has_prev) == (3, True, False)
        assert (len(second.items), second.has_next, second.has_prev) == (3, True, True)
        assert (len(last.items), last.has_next, last.has_prev) == (2, False, True)
        assert first.total_pages == 3
        assert ids(first) | ids(second) | ids(last) == {r.id for r in reports.values()}

    def test_page_beyond_the_end_is_empty(self, db, ngo_user, reports):
        page = queries.list_reports(db, ngo_user, page=10, page_size=5)
        assert page.items == []
        assert page.total == 8
        assert page.has_next is False
        assert page.has_prev is True

    def test_empty_store(self, db, ngo_user):
        page = queries.list_reports(db, ngo_user)
        assert page.items == []
        assert page.total == 0
        assert page.has_next is False
        assert page.pagination()["total_pages"] == 0

    def test_sort_by_title_ascending(self, db, ngo_user, reports):
        page = queries.list_reports(db, ngo_user, sort_field="title", sort_order="asc", page_size=100)
        titles = [r.title for r in page.items]
        assert titles == sorted(titles)

    def test_user_reports_only_returns_own(self, db, community_user, reports):
        page = queries.user_reports(db, community_user, status=models.ReportStatus.approved)
        assert ids(page) == {reports["uma_public"].id, reports["uma_private"].id}


class TestAggregates:
    def test_community_summary_counts_own_reports(self, db, community_user, reports):
        result = queries.summary(db, community_user)

        assert result["summary"] == {"total": 3, "pending": 1, "approved": 2, "rejected": 0}
        assert result["category_stats"] == [{"category": "pollution", "count": 3}]
        assert sum(m["count"] for m in result["monthly_stats"]) == 3
        assert len(result["monthly_stats"]) <= 12

    def test_researcher_summary_is_global(self, db, researcher_user, reports):
        result = queries.summary(db, researcher_user)
        assert result["summary"] == {"total": 8, "pending": 2, "approved": 4, "rejected": 1}

    def test_admin_stats(self, db, government_user, reports):
        result = queries.admin_stats(db, government_user)

        assert result["total_reports"] == 8
        assert result["under_investigation_reports"] == 1
        assert {"name": "under investigation", "count": 1} in result["status_stats"]
        assert result["status_stats"][0] == {"name": "approved", "count": 4}

    def test_admin_stats_forbidden_for_community(self, db, community_user):
        with pytest.raises(ForbiddenError):
            queries.admin_stats(db, community_user)


class TestUsers:
    def test_leaderboard_orders_by_points_then_submissions(self, db, make_user):
        make_user("low", points=10, reports_submitted=1)
        make_user("tie_few", points=60, reports_submitted=1)
        make_user("tie_many", points=60, reports_submitted=4)
        make_user("gone", points=500, is_active=False)

        board = queries.leaderboard(db, limit=3)
        assert [u.username for u in board] == ["tie_many", "tie_few", "low"]

    def test_search_users(self, db, researcher_user, ngo_user, make_user):
        make_user("mangrove_fan", organization="Friends of Mangroves")
        make_user("mangrove_ghost", is_active=False)

        found = queries.search_users(db, researcher_user, "mangrove")
        assert {u.username for u in found} == {"vera", "mangrove_fan"}

        only_ngo = queries.search_users(db, researcher_user, "mangrove", role=models.UserRole.ngo)
        assert [u.username for u in only_ngo] == ["vera"]

    def test_search_users_forbidden_for_community(self, db, community_user):
        with pytest.raises(ForbiddenError):
            queries.search_users(db, community_user, "any")

    def test_user_stats(self, db, ngo_user, community_user, make_user):
        make_user("sleepy", is_active=False)
        stats = queries.user_stats(db, ngo_user)

        assert stats["summary"] == {"total_users": 3, "active_users": 2, "inactive_users": 1}
        assert {"role": "ngo", "count": 1} in stats["role_distribution"]
        assert len(stats["top_contributors"]) == 2

    def test_achievements_and_rank(self, db, make_user):
        make_user("leader", points=3000)
        user = make_user("climber", points=520, reports_submitted=6, reports_validated=10)

        result = queries.achievements(db, user)
        names = [a["name"] for a in result["achievements"]]

        assert names == ["First Steps", "Growing Strong", "Active Reporter", "Quality Contributor"]
        assert result["rank"] == 2
        assert result["next_milestone"] == {"points": 1000, "remaining": 480}

    def test_no_milestone_past_the_top(self):
        assert queries.next_milestone(10000) is None
        assert queries.next_milestone(0) == {"points": 100, "remaining": 100}
