"""Tests for the jobs and companies JSON endpoints."""


def _login(client, fake_cms, user_type):
    fake_cms.add(
        "POST",
        "/api/auth/local",
        body={"jwt": "user-jwt", "user": {"id": 4, "email": "hr@acme.test", "confirmed": True, "type": user_type}},
    )
    client.post("/login", json={"identifier": "hr@acme.test", "password": "password1"})


def test_jobs_list_is_public_and_degrades(client, fake_cms):
    fake_cms.add("GET", "/api/jobs", status=500, body={})
    r = client.get("/api/jobs")
    assert r.status_code == 200
    assert r.json == {"data": None, "meta": {}}


def test_jobs_list_filters_by_owner_for_organizations(client, fake_cms):
    _login(client, fake_cms, "organization")
    fake_cms.add("GET", "/api/jobs", body={"data": [{"id": 1, "title": "Lecturer"}], "meta": {}})
    r = client.get("/api/jobs")
    assert r.json["data"] == [{"id": 1, "title": "Lecturer"}]
    query = fake_cms.calls_to("/api/jobs")[0]["query"]
    assert "filters[user][id][$eq]=4" in query


def test_job_create_requires_organization(client, fake_cms):
    assert client.post("/api/jobs", json={"data": {"title": "x"}}).status_code == 401
    _login(client, fake_cms, "applicant")
    r = client.post("/api/jobs", json={"data": {"title": "x"}})
    assert r.status_code == 403
    assert fake_cms.calls_to("/api/jobs") == []


def test_job_create_validates_body(client, fake_cms):
    _login(client, fake_cms, "organization")
    assert client.post("/api/jobs", json={"title": "no data wrapper"}).status_code == 400
    r = client.post("/api/jobs", json={"data": {"title": "Lecturer"}})
    assert r.status_code == 400
    assert r.json["error"] == "Title, description, and deadline are required"


def test_job_create_sends_pending_job_with_user_token(client, fake_cms):
    _login(client, fake_cms, "organization")
    fake_cms.add("GET", "/api/salaries", body={"data": []})
    fake_cms.add("POST", "/api/salaries", body={"data": {"id": 11}})
    fake_cms.add("POST", "/api/jobs", status=201, body={"data": {"id": 21, "title": "Senior Lecturer"}})

    r = client.post(
        "/api/jobs",
        json={
            "data": {
                "title": "Senior Lecturer",
                "description": "Teach things",
                "deadline": "2026-12-01",
                "salary": {"min": 1000, "max": 2000},
                "categories": [3],
            }
        },
    )
    assert r.status_code == 201
    assert r.json["data"]["id"] == 21

    sent = fake_cms.calls_to("/api/jobs")[-1]
    assert sent["method"] == "POST"
    assert sent["headers"]["authorization"] == "Bearer user-jwt"
    job = sent["json"]["data"]
    assert job["slug"] == "senior-lecturer"
    assert job["approvalStatus"] == "Pending"
    assert job["workplaceType"] == "On Site"
    assert job["user"] == 4
    assert job["salary"] == 11
    assert job["categories"] == [3]


def test_job_create_surfaces_cms_error(client, fake_cms):
    _login(client, fake_cms, "organization")
    fake_cms.add("POST", "/api/jobs", status=400, body={"error": {"message": "deadline must be a date"}})
    r = client.post("/api/jobs", json={"data": {"title": "T", "description": "D", "deadline": "soon"}})
    assert r.status_code == 400
    assert r.json["error"] == "deadline must be a date"


def test_company_create_reuses_existing_name(client, fake_cms):
    _login(client, fake_cms, "organization")
    fake_cms.add("GET", "/api/companies", body={"data": [{"id": 8, "name": "Acme"}]})
    r = client.post("/api/companies", json={"data": {"name": "Acme"}})
    assert r.status_code == 200
    assert r.json["message"] == "Using existing company"
    assert r.json["data"] == {"id": 8, "name": "Acme"}
    assert not [c for c in fake_cms.calls if c["method"] == "POST" and c["path"] == "/api/companies"]


def test_company_create_new(client, fake_cms):
    _login(client, fake_cms, "organization")
    fake_cms.add("GET", "/api/companies", body={"data": []})
    fake_cms.add("POST", "/api/companies", body={"data": {"id": 9, "name": "Acme Labs"}})
    r = client.post(
        "/api/companies",
        json={"data": {"name": "Acme Labs", "logo": [5, 6], "socialLinks": [{"label": "X", "url": "https://x", "icon": {}}]}},
    )
    assert r.status_code == 201
    sent = [c for c in fake_cms.calls if c["method"] == "POST" and c["path"] == "/api/companies"][0]["json"]["data"]
    assert sent["slug"] == "acme-labs"
    assert sent["owner"] == 4
    assert sent["logo"] == 5
    assert sent["socialLinks"] == [{"label": "X", "url": "https://x"}]


def test_company_update_links_employer_profile(client, fake_cms):
    _login(client, fake_cms, "organization")
    fake_cms.add("GET", "/api/employer-profiles", body={"data": [{"id": 2, "documentId": "emp-doc"}]})
    fake_cms.add("GET", "/api/companies", body={"data": []})
    fake_cms.add("PUT", "/api/companies/abc", body={"data": {"id": 9}})
    r = client.put("/api/companies/abc", json={"data": {"name": "Acme Two", "tagline": "Hi"}})
    assert r.status_code == 200
    sent = fake_cms.calls_to("/api/companies/abc")[0]["json"]["data"]
    assert sent["employers"] == ["emp-doc"]
    assert sent["slug"] == "acme-two"
    assert sent["tagline"] == "Hi"


def test_company_update_with_unreadable_response_reports_warning(client, fake_cms):
    _login(client, fake_cms, "organization")
    fake_cms.add("PUT", "/api/companies/abc", body=b"updated")
    r = client.put("/api/companies/abc", json={"data": {"tagline": "Hi"}})
    assert r.status_code == 200
    assert r.json["warning"]


def _sent(fake_cms, method, path):
    return [c for c in fake_cms.calls if c["method"] == method and c["path"] == path]


class TestJobUpdate:
    def test_only_owner_can_update(self, client, fake_cms):
        _login(client, fake_cms, "organization")
        fake_cms.add("GET", "/api/jobs/21", body={"data": {"id": 21, "user": {"id": 9}}})
        r = client.put("/api/jobs/21", json={"data": {"title": "Taken"}})
        assert r.status_code == 403
        assert _sent(fake_cms, "PUT", "/api/jobs/21") == []

    def test_sends_only_given_fields(self, client, fake_cms):
        _login(client, fake_cms, "organization")
        fake_cms.add("GET", "/api/jobs/21", body={"data": {"id": 21, "user": {"id": 4}}})
        fake_cms.add("PUT", "/api/jobs/21", body={"data": {"id": 21, "title": "New Title"}})
        r = client.put("/api/jobs/21", json={"data": {"title": "New Title", "deadline": "2027-01-01"}})
        assert r.status_code == 200
        sent = _sent(fake_cms, "PUT", "/api/jobs/21")[0]
        assert sent["json"] == {"data": {"title": "New Title", "slug": "new-title", "deadline": "2027-01-01"}}
        assert sent["headers"]["authorization"] == "Bearer user-jwt"

    def test_applicants_cannot_update(self, client, fake_cms):
        _login(client, fake_cms, "applicant")
        assert client.put("/api/jobs/21", json={"data": {"title": "x"}}).status_code == 403


class TestStudentProfiles:
    def test_save_updates_existing_profile_and_links_education(self, client, fake_cms):
        _login(client, fake_cms, "applicant")
        fake_cms.add("GET", "/api/student-profiles", body={"data": [{"id": 5, "user": {"id": 4}}]})
        fake_cms.add("POST", "/api/primary-educations", body={"data": {"id": 31}})
        fake_cms.add("POST", "/api/tertiar-educations", body={"data": {"id": 41}})
        fake_cms.add("PUT", "/api/student-profiles/5", body={"data": {"id": 5}})

        r = client.post(
            "/api/student-profiles",
            json={
                "data": {
                    "id": 99,
                    "email": "me@uni.test",
                    "firstName": "Abebe",
                    "primary_education": {"school": "Hope Primary", "woreda": "12"},
                    "tertiary_educations": [{"institution": "AAU", "region": {"set": [{"id": 3}]}}],
                    "residentialAddress": {"id": 7, "kebele": "01"},
                }
            },
        )
        assert r.status_code == 200

        assert _sent(fake_cms, "POST", "/api/primary-educations")[0]["json"] == {
            "data": {"school": "Hope Primary", "woreda": 12}
        }
        assert _sent(fake_cms, "POST", "/api/tertiar-educations")[0]["json"] == {
            "data": {"institution": "AAU", "region": 3}
        }
        profile = _sent(fake_cms, "PUT", "/api/student-profiles/5")[0]["json"]["data"]
        assert profile["user"] == 4
        assert "email" not in profile and "id" not in profile
        assert profile["primary_education"] == {"id": 31}
        assert profile["tertiary_educations"] == {"set": [{"id": 41}]}
        assert profile["residentialAddress"] == {"kebele": "01"}

    def test_save_creates_profile_when_none_exists(self, client, fake_cms):
        _login(client, fake_cms, "applicant")
        fake_cms.add("GET", "/api/student-profiles", body={"data": []})
        fake_cms.add("POST", "/api/student-profiles", body={"data": {"id": 6}})
        r = client.post("/api/student-profiles", json={"data": {"firstName": "Abebe"}})
        assert r.status_code == 201
        assert r.json["data"] == {"id": 6}

    def test_update_requires_profile_id(self, client, fake_cms):
        _login(client, fake_cms, "applicant")
        r = client.put("/api/student-profiles", json={"data": {"firstName": "Abebe"}})
        assert r.status_code == 400
        assert r.json["error"] == "Profile ID is required for update"

    def test_update_refuses_someone_elses_profile(self, client, fake_cms):
        _login(client, fake_cms, "applicant")
        fake_cms.add("GET", "/api/student-profiles", body={"data": [{"id": 5, "user": {"id": 9}}]})
        r = client.put("/api/student-profiles", json={"data": {"id": 5, "firstName": "Abebe"}})
        assert r.status_code == 403
        assert _sent(fake_cms, "PUT", "/api/student-profiles/5") == []

    def test_update_writes_to_the_users_own_profile(self, client, fake_cms):
        _login(client, fake_cms, "applicant")
        fake_cms.add("GET", "/api/student-profiles", body={"data": [{"id": 5, "user": {"id": 4}}]})
        fake_cms.add("PUT", "/api/student-profiles/5", body={"data": {"id": 5}})
        r = client.put("/api/student-profiles", json={"data": {"id": 77, "firstName": "Abebe"}})
        assert r.status_code == 200
        assert _sent(fake_cms, "PUT", "/api/student-profiles/5")[0]["json"]["data"]["firstName"] == "Abebe"

    def test_organizations_cannot_manage_student_profiles(self, client, fake_cms):
        _login(client, fake_cms, "organization")
        assert client.post("/api/student-profiles", json={"data": {"firstName": "x"}}).status_code == 403


class TestEmployerProfiles:
    def test_full_name_required(self, client, fake_cms):
        _login(client, fake_cms, "organization")
        r = client.post("/api/employer-profiles", json={"data": {"bio": "hi"}})
        assert r.status_code == 400
        assert r.json["error"] == "Full name is required"

    def test_save_creates_profile(self, client, fake_cms):
        _login(client, fake_cms, "organization")
        fake_cms.add("GET", "/api/employer-profiles", body={"data": []})
        fake_cms.add("POST", "/api/employer-profiles", body={"data": {"id": 2}})
        r = client.post("/api/employer-profiles", json={"data": {"fullName": "Hana Bekele", "company": 8}})
        assert r.status_code == 201
        sent = _sent(fake_cms, "POST", "/api/employer-profiles")[0]["json"]["data"]
        assert sent == {"fullName": "Hana Bekele", "phone": None, "bio": None, "user": 4, "company": 8}

    def test_update_refuses_foreign_document(self, client, fake_cms):
        _login(client, fake_cms, "organization")
        fake_cms.add("GET", "/api/employer-profiles", body={"data": [{"id": 2, "documentId": "emp-doc"}]})
        r = client.put("/api/employer-profiles", json={"data": {"documentId": "other-doc", "bio": "x"}})
        assert r.status_code == 403

    def test_update_can_unlink_company(self, client, fake_cms):
        _login(client, fake_cms, "organization")
        fake_cms.add("GET", "/api/employer-profiles", body={"data": [{"id": 2, "documentId": "emp-doc"}]})
        fake_cms.add("PUT", "/api/employer-profiles/emp-doc", body={"data": {"id": 2}})
        r = client.put("/api/employer-profiles", json={"data": {"documentId": "emp-doc", "bio": "x", "company": None}})
        assert r.status_code == 200
        sent = _sent(fake_cms, "PUT", "/api/employer-profiles/emp-doc")[0]
        assert sent["json"] == {"data": {"bio": "x", "company": None}}
        assert sent["query"] == "populate=*"

    def test_my_profile_returns_single_record(self, client, fake_cms):
        _login(client, fake_cms, "organization")
        fake_cms.add("GET", "/api/employer-profiles", body={"data": [{"id": 2, "fullName": "Hana"}], "meta": {}})
        r = client.get("/api/employer-profiles?myProfile=true")
        assert r.json["data"] == {"id": 2, "fullName": "Hana"}


def test_candidate_profile_save_resolves_skills(client, fake_cms):
    _login(client, fake_cms, "applicant")
    fake_cms.add("GET", "/api/skills", body={"data": []})
    fake_cms.add("POST", "/api/skills", body={"data": {"id": 15}})
    fake_cms.add("GET", "/api/candidate-profiles", body={"data": []})
    fake_cms.add("POST", "/api/candidate-profiles", body={"data": {"id": 3}})
    r = client.post("/api/candidate-profiles", json={"data": {"skills": [7, {"skillName": "Python", "level": "Expert"}]}})
    assert r.status_code == 201
    sent = _sent(fake_cms, "POST", "/api/candidate-profiles")[0]["json"]["data"]
    assert sent["skills"] == [7, 15]
    assert sent["user"] == 4


def test_candidate_list_is_for_organizations(client, fake_cms):
    _login(client, fake_cms, "applicant")
    assert client.get("/api/candidate-profiles").status_code == 403


def test_woredas_require_sign_in_and_filter_by_zone(client, fake_cms):
    assert client.get("/api/locations/woredas").status_code == 401
    _login(client, fake_cms, "applicant")
    fake_cms.add("GET", "/api/woredas", body={"data": [{"id": 1, "name": "Bole"}]})
    r = client.get("/api/locations/woredas?zoneId=3")
    assert r.json["data"] == [{"id": 1, "name": "Bole"}]
    assert "filters[zone][id][$eq]=3" in fake_cms.calls_to("/api/woredas")[0]["query"]
