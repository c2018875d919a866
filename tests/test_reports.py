"""Tests for app.reports and /admin routes."""
from app.proposals import propose_alternative_date
from app.ratings import create_rating
from app.reports import dashboard_stats, requests_per_day, technician_performance
from app.scheduling import accept_directly, complete_by_client


class TestReports:
    def test_dashboard_stats(self, db, make_request, client_user, technician, admin_user, tomorrow_at):
        done = make_request(9)
        open_request = make_request(15)
        propose_alternative_date(db, open_request.id, technician.id, tomorrow_at(16))
        accept_directly(db, done.id, technician.id)
        complete_by_client(db, done.id, client_user.id)
        create_rating(db, client_user, done.id, 4)

        stats = dashboard_stats(db)

        assert stats["identities"]["by_role"] == {"client": 1, "technician": 1, "admin": 1}
        assert stats["identities"]["active"] == 3
        assert stats["service_requests"]["total"] == 2
        assert stats["service_requests"]["by_status"]["completed"] == 1
        assert stats["service_requests"]["by_status"]["pending"] == 1
        assert stats["proposals"]["pending"] == 1
        assert stats["ratings"] == {"total": 1, "average": 4.0}

    def test_requests_per_day_zero_filled(self, db, make_request):
        make_request(10)
        make_request(11)

        series = requests_per_day(db, days=7)

        assert len(series) == 7
        assert series[-1]["count"] == 2
        assert sum(day["count"] for day in series) == 2

    def test_technician_performance(self, db, make_request, client_user, technician, second_technician):
        job = make_request(9)
        accept_directly(db, job.id, technician.id)
        complete_by_client(db, job.id, client_user.id)
        create_rating(db, client_user, job.id, 5)

        rows = technician_performance(db)

        assert rows[0] == {
            "technician_id": technician.id,
            "name": "Tomas Tech",
            "completed_jobs": 1,
            "average_rating": 5.0,
            "rating_count": 1,
        }
        assert rows[1]["technician_id"] == second_technician.id
        assert rows[1]["completed_jobs"] == 0
        assert rows[1]["average_rating"] is None


class TestAdminRoutes:
    def test_admin_only(self, client, client_user, admin_user, auth_headers):
        assert client.get("/admin/stats", headers=auth_headers(client_user)).status_code == 401
        assert client.get("/admin/stats", headers=auth_headers(admin_user)).status_code == 200

    def test_requests_per_day_bounds(self, client, admin_user, auth_headers):
        headers = auth_headers(admin_user)
        assert len(client.get("/admin/requests-per-day?days=3", headers=headers).json()) == 3
        assert client.get("/admin/requests-per-day?days=0", headers=headers).status_code == 422
