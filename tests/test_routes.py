"""Tests for the Flask vault API."""

from database import db_manager
from conftest import RFC_SECRET_SHA1_B32, make_entry

GITHUB = {"issuer": "GitHub", "account": "me", "secret": RFC_SECRET_SHA1_B32}


class TestIndex:
    def test_lists_endpoints(self, client) -> None:
        """Test the root endpoint lists the vault API."""
        response = client.get("/")

        assert response.status_code == 200
        endpoints = response.get_json()["endpoints"]
        assert "GET /api/vault/codes" in endpoints
        assert "POST /api/vault/entries" in endpoints


class TestUnlock:
    """Tests for POST /api/vault/unlock."""

    def test_locked_vault_refuses_reads(self, client) -> None:
        response = client.get("/api/vault/codes")
        assert response.status_code == 409

    def test_wrong_passphrase(self, unlocked_client, app) -> None:
        """Test a second unlock with another passphrase is rejected."""
        response = unlocked_client.post("/api/vault/unlock", json={"passphrase": "nope"})

        assert response.status_code == 401
        assert "error" in response.get_json()

    def test_missing_body(self, client) -> None:
        response = client.post("/api/vault/unlock", data="not json")
        assert response.status_code == 400

    def test_unlock_loads_stored_entries(self, client, db_path) -> None:
        """Test entries saved earlier are loaded on unlock."""
        db_manager.unlock_vault("hunter2", db_path)
        db_manager.save_vault((make_entry(issuer="Stored"),), db_path)

        response = client.post("/api/vault/unlock", json={"passphrase": "hunter2"})

        assert response.get_json() == {"unlocked": True, "entries": 1}
        assert client.get("/api/vault/codes").get_json()["codes"][0]["issuer"] == "Stored"


class TestEntries:
    """Tests for adding, replacing and clearing entries."""

    def test_add_and_read_codes(self, unlocked_client) -> None:
        """Test the RFC key at now=59 gives 287082."""
        response = unlocked_client.post("/api/vault/entries", json=GITHUB)
        assert response.status_code == 201
        assert response.get_json()["entries"] == 1

        body = unlocked_client.get("/api/vault/codes").get_json()
        assert body["timestamp"] == 59
        assert body["refresh_in"] == 1
        code = body["codes"][0]
        assert code["code"] == "287082"
        assert code["remaining"] == 1
        assert code["issuer"] == "GitHub"

    def test_duplicates_are_kept(self, unlocked_client) -> None:
        unlocked_client.post("/api/vault/entries", json=GITHUB)
        unlocked_client.post("/api/vault/entries", json=GITHUB)

        codes = unlocked_client.get("/api/vault/codes").get_json()["codes"]
        assert [c["index"] for c in codes] == [0, 1]

    def test_options(self, unlocked_client) -> None:
        """Test algorithm, digits and period are honoured."""
        payload = dict(GITHUB, algorithm="sha1", digits=8, period=30)
        unlocked_client.post("/api/vault/entries", json=payload)

        code = unlocked_client.get("/api/vault/codes").get_json()["codes"][0]
        assert code["code"] == "94287082"

    def test_invalid_entries_are_rejected(self, unlocked_client) -> None:
        """Test bad input gives 400 and leaves the vault unchanged."""
        bad_payloads = [
            {"issuer": "GitHub", "account": "me"},
            dict(GITHUB, secret="not base32!"),
            dict(GITHUB, secret="GEZDé"),
            dict(GITHUB, digits=10),
            dict(GITHUB, period=0),
            dict(GITHUB, algorithm="MD5"),
        ]
        for payload in bad_payloads:
            response = unlocked_client.post("/api/vault/entries", json=payload)
            assert response.status_code == 400, payload

        assert unlocked_client.get("/api/vault/codes").get_json()["codes"] == []

    def test_issuer_filter(self, unlocked_client) -> None:
        unlocked_client.post("/api/vault/entries", json=GITHUB)
        unlocked_client.post("/api/vault/entries", json=dict(GITHUB, issuer="AWS"))

        codes = unlocked_client.get("/api/vault/codes?issuer=git").get_json()["codes"]
        assert [c["issuer"] for c in codes] == ["GitHub"]

    def test_replace_vault(self, unlocked_client) -> None:
        unlocked_client.post("/api/vault/entries", json=GITHUB)
        response = unlocked_client.put("/api/vault", json={"entries": [dict(GITHUB, issuer="A"),
                                                                      dict(GITHUB, issuer="B")]})

        assert response.get_json() == {"entries": 2}
        codes = unlocked_client.get("/api/vault/codes").get_json()["codes"]
        assert [c["issuer"] for c in codes] == ["A", "B"]

    def test_replace_vault_requires_list(self, unlocked_client) -> None:
        response = unlocked_client.put("/api/vault", json={"entries": "nope"})
        assert response.status_code == 400

    def test_clear(self, unlocked_client, db_path) -> None:
        unlocked_client.post("/api/vault/entries", json=GITHUB)
        response = unlocked_client.delete("/api/vault/entries")

        assert response.get_json() == {"entries": 0}
        assert unlocked_client.get("/api/vault/codes").get_json()["codes"] == []
        assert db_manager.load_vault(db_path) == ()


class TestConceal:
    """Tests for the conceal_tokens flag."""

    def test_toggle_masks_codes(self, unlocked_client, db_path) -> None:
        unlocked_client.post("/api/vault/entries", json=GITHUB)

        response = unlocked_client.post("/api/vault/settings/conceal")
        assert response.get_json() == {"conceal_tokens": True}
        assert db_manager.load_settings(db_path).conceal_tokens is True

        body = unlocked_client.get("/api/vault/codes").get_json()
        assert body["conceal_tokens"] is True
        assert body["codes"][0]["code"] == "******"

        unlocked_client.post("/api/vault/settings/conceal")
        assert unlocked_client.get("/api/vault/settings").get_json() == {"conceal_tokens": False}

    def test_toggle_requires_unlocked_vault(self, client, db_path) -> None:
        """Test a locked vault refuses the toggle instead of flipping an unsaved flag."""
        response = client.post("/api/vault/settings/conceal")

        assert response.status_code == 409
        assert client.get("/api/vault/settings").get_json() == {"conceal_tokens": False}
        assert db_manager.load_settings(db_path).conceal_tokens is False

        client.post("/api/vault/unlock", json={"passphrase": "hunter2"})
        assert client.post("/api/vault/settings/conceal").get_json() == {"conceal_tokens": True}
        assert db_manager.load_settings(db_path).conceal_tokens is True


class TestOtpauth:
    def test_export(self, unlocked_client) -> None:
        unlocked_client.post("/api/vault/entries", json=GITHUB)

        uris = unlocked_client.get("/api/vault/otpauth").get_json()["uris"]
        assert uris[0]["uri"].startswith("otpauth://totp/GitHub:me?secret=" + RFC_SECRET_SHA1_B32)
