import pytest

from dam_client.errors import ApiError, ValidationError
from dam_client.schemas import AssetFilters, AssetStatus, AssetUpdate, AuditFilters, RegisterRequest, UserRole
from dam_client.services.asset_service import asset_cache_key
from tests.consts import TEST_ACCESS_TOKEN, TEST_BASE_URL, TEST_REFRESH_TOKEN
from tests.fixtures.api_fixtures import (
    asset_list_payload,
    asset_payload,
    make_response,
    user_payload,
)


# ---- auth ----

def test_login_stores_tokens_and_loads_user(client, fake_session, token_store):
    fake_session.add(
        "POST", "/auth/jwt/create/",
        make_response(200, {"access": TEST_ACCESS_TOKEN, "refresh": TEST_REFRESH_TOKEN}),
    )
    fake_session.add("GET", "/auth/users/me/", make_response(200, user_payload("ADMIN")))

    user = client.auth.login("alice", "secret")

    assert user.username == "alice"
    assert user.role == UserRole.ADMIN
    assert token_store.get_access() == TEST_ACCESS_TOKEN
    assert token_store.get_refresh() == TEST_REFRESH_TOKEN
    assert client.permissions.can_view_audit
    assert fake_session.calls_to("GET", "/auth/users/me/")[0].bearer == TEST_ACCESS_TOKEN

    # the user is cached; asking again does not hit the API
    client.auth.get_current_user()
    assert len(fake_session.calls_to("GET", "/auth/users/me/")) == 1


def test_login_failure_leaves_tokens_untouched(client, fake_session, token_store):
    fake_session.add(
        "POST", "/auth/jwt/create/",
        make_response(401, {"detail": "No active account found with the given credentials"}),
    )

    with pytest.raises(ApiError) as exc_info:
        client.auth.login("alice", "wrong")

    assert exc_info.value.status_code == 401
    assert token_store.get_access() is None
    assert not client.auth.is_authenticated


@pytest.mark.parametrize("username, password", [("", "pw"), ("   ", "pw"), ("alice", "")])
def test_login_validates_before_network(client, fake_session, username, password):
    with pytest.raises(ValidationError):
        client.auth.login(username, password)
    assert fake_session.calls == []


def test_register_is_unauthenticated(client, fake_session):
    fake_session.add("POST", "/auth/users/", make_response(201, user_payload("VIEWER", user_id=9, username="carol")))

    user = client.auth.register(RegisterRequest(
        username="carol", email="carol@example.com", password="pw12345!", re_password="pw12345!",
    ))

    assert user.id == 9
    call = fake_session.calls_to("POST", "/auth/users/")[0]
    assert "Authorization" not in call.headers
    assert call.json["re_password"] == "pw12345!"


def test_logout_clears_everything(logged_in, token_store):
    logged_in.auth.get_current_user()
    logged_in.assets.cache.set(("tags",), ["x"])

    logged_in.auth.logout()

    assert token_store.get_access() is None
    assert logged_in.cache.keys() == []
    assert logged_in.auth.current_user is None
    assert logged_in.permissions.granted() == []


def test_restore_session_without_tokens(client, fake_session):
    assert client.auth.restore_session() is None
    assert fake_session.calls == []


def test_restore_session_with_tokens(logged_in):
    user = logged_in.auth.restore_session()
    assert user.role == UserRole.EDITOR
    assert logged_in.permissions.can_edit
    assert not logged_in.permissions.can_delete


def test_restore_session_expired(client, fake_session, token_store, expired_sessions):
    token_store.set_tokens("stale", TEST_REFRESH_TOKEN)
    fake_session.add("GET", "/auth/users/me/", make_response(401))
    fake_session.add("POST", "/auth/jwt/refresh/", make_response(401, {"detail": "Token is invalid or expired"}))

    assert client.auth.restore_session() is None
    assert token_store.get_access() is None
    assert expired_sessions == [True]


# ---- assets ----

def test_list_assets_sends_filters(logged_in, fake_session):
    fake_session.add("GET", "/api/assets/", make_response(200, asset_list_payload("a1", "a2")))

    page = logged_in.assets.list_assets(AssetFilters(search="cat", status=AssetStatus.APPROVED, deleted=False))

    assert [item.id for item in page.results] == ["a1", "a2"]
    assert page.count == 2
    params = fake_session.calls_to("GET", "/api/assets/")[0].params
    assert params == {"search": "cat", "status": "APPROVED", "deleted": "false"}


def test_asset_lists_are_cached_per_filter(logged_in, fake_session):
    fake_session.add("GET", "/api/assets/", make_response(200, asset_list_payload("a1")))

    logged_in.assets.list_assets(AssetFilters(page=1))
    logged_in.assets.list_assets(AssetFilters(page=1))
    logged_in.assets.list_assets(AssetFilters(page=2))

    assert len(fake_session.calls_to("GET", "/api/assets/")) == 2


def test_iter_assets_follows_next_links(logged_in, fake_session):
    fake_session.add(
        "GET", "/api/assets/",
        lambda call: make_response(
            200,
            asset_list_payload("a3") if call.params is None
            else asset_list_payload("a1", "a2", next_url=f"{TEST_BASE_URL}/api/assets/?page=2"),
        ),
    )

    ids = [item.id for item in logged_in.assets.iter_assets(AssetFilters(page_size=2))]

    assert ids == ["a1", "a2", "a3"]
    calls = fake_session.calls_to("GET", "/api/assets/")
    assert calls[1].url == f"{TEST_BASE_URL}/api/assets/?page=2"


def test_update_invalidates_lists_but_not_folders_or_tags(logged_in, fake_session):
    fake_session.add("GET", "/api/assets/", make_response(200, asset_list_payload("a1")))
    fake_session.add("GET", "/api/folders/", make_response(200, []))
    fake_session.add("GET", "/api/tags/", make_response(200, [{"id": "t1", "name": "cats"}]))
    fake_session.add("PATCH", "/api/assets/a1/", make_response(200, asset_payload("a1", alt_text="A cat")))

    logged_in.assets.list_assets()
    logged_in.folders.list_folders()
    logged_in.tags.list_tags()

    asset = logged_in.assets.update_asset("a1", AssetUpdate(alt_text="A cat"))

    assert asset.alt_text == "A cat"
    assert fake_session.calls_to("PATCH", "/api/assets/a1/")[0].json == {"alt_text": "A cat"}
    keys = logged_in.cache.keys()
    assert ("folders",) in keys
    assert ("tags",) in keys
    assert not any(key[0] == "assets" for key in keys)
    # the fresh copy is cached for detail reads
    assert logged_in.assets.get_asset("a1").alt_text == "A cat"
    assert fake_session.calls_to("GET", "/api/assets/a1/") == []


def test_approve_sends_status(logged_in, fake_session):
    fake_session.add("PATCH", "/api/assets/a1/", make_response(200, asset_payload("a1", status="APPROVED")))

    asset = logged_in.assets.approve_asset("a1")

    assert asset.status == AssetStatus.APPROVED
    assert fake_session.calls_to("PATCH", "/api/assets/a1/")[0].json == {"status": "APPROVED"}


def test_delete_and_restore_invalidate_asset_entries(logged_in, fake_session):
    fake_session.add("GET", "/api/assets/a1/", make_response(200, asset_payload("a1")))
    fake_session.add("DELETE", "/api/assets/a1/", make_response(204))
    fake_session.add("POST", "/api/assets/a1/restore/", make_response(200, asset_payload("a1")))

    logged_in.assets.get_asset("a1")
    logged_in.assets.delete_asset("a1")
    assert asset_cache_key("a1") not in logged_in.cache.keys()

    restored = logged_in.assets.restore_asset("a1")
    assert restored.id == "a1"
    assert asset_cache_key("a1") not in logged_in.cache.keys()


def test_failed_mutation_keeps_cache(logged_in, fake_session):
    fake_session.add("GET", "/api/assets/", make_response(200, asset_list_payload("a1")))
    fake_session.add("DELETE", "/api/assets/a1/", make_response(403, {"detail": "You do not have permission"}))

    logged_in.assets.list_assets()

    with pytest.raises(ApiError) as exc_info:
        logged_in.assets.delete_asset("a1")

    assert exc_info.value.status_code == 403
    assert any(key[0] == "assets" for key in logged_in.cache.keys())


def test_blank_asset_id_is_rejected(logged_in, fake_session):
    with pytest.raises(ValidationError):
        logged_in.assets.get_asset(" ")
    assert fake_session.calls == []


# ---- folders and tags ----

def test_folder_lifecycle(logged_in, fake_session):
    fake_session.add("GET", "/api/folders/", make_response(200, {"count": 0, "results": []}))
    fake_session.add("POST", "/api/folders/", make_response(201, {"id": "f1", "name": "Campaigns", "full_path": "Campaigns"}))
    fake_session.add("PATCH", "/api/folders/f1/", make_response(200, {"id": "f1", "name": "2025", "full_path": "2025"}))
    fake_session.add("DELETE", "/api/folders/f1/", make_response(204))

    assert logged_in.folders.list_folders() == []
    folder = logged_in.folders.create_folder("Campaigns", parent="root")
    assert folder.id == "f1"
    assert fake_session.calls_to("POST", "/api/folders/")[0].json == {"name": "Campaigns", "parent": "root"}
    assert ("folders",) not in logged_in.cache.keys()

    renamed = logged_in.folders.update_folder("f1", name="2025")
    assert renamed.name == "2025"
    logged_in.folders.delete_folder("f1")
    assert len(fake_session.calls_to("DELETE", "/api/folders/f1/")) == 1


def test_empty_folder_name_is_rejected(logged_in, fake_session):
    with pytest.raises(ValidationError):
        logged_in.folders.create_folder("   ")
    assert fake_session.calls == []


def test_tag_lifecycle(logged_in, fake_session):
    fake_session.add("GET", "/api/tags/", make_response(200, [{"id": "t1", "name": "cats"}]))
    fake_session.add("POST", "/api/tags/", make_response(201, {"id": "t2", "name": "dogs"}))
    fake_session.add("PATCH", "/api/tags/t2/", make_response(200, {"id": "t2", "name": "puppies"}))
    fake_session.add("DELETE", "/api/tags/t2/", make_response(204))

    assert [t.name for t in logged_in.tags.list_tags()] == ["cats"]
    assert logged_in.tags.create_tag(" dogs ").name == "dogs"
    assert fake_session.calls_to("POST", "/api/tags/")[0].json == {"name": "dogs"}
    assert logged_in.tags.update_tag("t2", "puppies").name == "puppies"
    logged_in.tags.delete_tag("t2")

    logged_in.tags.list_tags()
    assert len(fake_session.calls_to("GET", "/api/tags/")) == 2


def test_empty_tag_name_is_rejected(logged_in, fake_session):
    with pytest.raises(ValidationError):
        logged_in.tags.create_tag("")
    assert fake_session.calls == []


# ---- audit ----

def test_audit_log_page(logged_in, fake_session):
    fake_session.add("GET", "/api/audit/", make_response(200, {
        "count": 1,
        "next": None,
        "previous": None,
        "results": [{
            "id": "l1",
            "actor": "7",
            "actor_username": "alice",
            "action": "ASSET_UPLOAD",
            "target_type": "asset",
            "target_id": "a1",
            "metadata": {"filename": "photo.jpg"},
            "created_at": "2024-01-02T00:00:00Z",
        }],
    }))

    page = logged_in.audit.list_audit_logs(AuditFilters(action="ASSET_UPLOAD"))

    assert page.results[0].metadata == {"filename": "photo.jpg"}
    params = fake_session.calls_to("GET", "/api/audit/")[0].params
    assert params == {"page": "1", "page_size": "20", "action": "ASSET_UPLOAD"}


def test_verify_token(client, fake_session):
    fake_session.add("POST", "/auth/jwt/verify/", make_response(200, {}))

    assert client.auth.verify_token(TEST_ACCESS_TOKEN) == {}
    assert fake_session.calls_to("POST", "/auth/jwt/verify/")[0].json == {"token": TEST_ACCESS_TOKEN}


def test_get_folder_is_cached_until_folders_change(logged_in, fake_session):
    fake_session.add("GET", "/api/folders/f1/", make_response(200, {"id": "f1", "name": "Campaigns"}))
    fake_session.add("DELETE", "/api/folders/f2/", make_response(204))

    assert logged_in.folders.get_folder("f1").name == "Campaigns"
    logged_in.folders.get_folder("f1")
    assert len(fake_session.calls_to("GET", "/api/folders/f1/")) == 1

    logged_in.folders.delete_folder("f2")
    logged_in.folders.get_folder("f1")
    assert len(fake_session.calls_to("GET", "/api/folders/f1/")) == 2


def test_iter_assets_does_not_leak_token_to_foreign_next(logged_in, fake_session):
    fake_session.add(
        "GET", "/api/assets/",
        lambda call: make_response(
            200,
            asset_list_payload("a2") if call.params is None
            else asset_list_payload("a1", next_url="https://cdn-proxy.test/api/assets/?page=2"),
        ),
    )

    ids = [item.id for item in logged_in.assets.iter_assets(AssetFilters(page_size=1))]

    assert ids == ["a1", "a2"]
    first, second = fake_session.calls_to("GET", "/api/assets/")
    assert first.bearer == TEST_ACCESS_TOKEN
    assert second.bearer is None


def test_folder_and_tag_lists_follow_pagination(logged_in, fake_session):
    def folders(call):
        if call.url.endswith("?page=2"):
            return make_response(200, {"count": 2, "next": None, "previous": None,
                                       "results": [{"id": "f2", "name": "Archive"}]})
        return make_response(200, {"count": 2, "next": f"{TEST_BASE_URL}/api/folders/?page=2", "previous": None,
                                   "results": [{"id": "f1", "name": "Campaigns"}]})

    def tags(call):
        if call.url.endswith("?page=2"):
            return make_response(200, {"count": 2, "next": None, "results": [{"id": "t2", "name": "dogs"}]})
        return make_response(200, {"count": 2, "next": f"{TEST_BASE_URL}/api/tags/?page=2",
                                   "results": [{"id": "t1", "name": "cats"}]})

    fake_session.add("GET", "/api/folders/", folders)
    fake_session.add("GET", "/api/tags/", tags)

    assert [f.id for f in logged_in.folders.list_folders()] == ["f1", "f2"]
    assert [t.name for t in logged_in.tags.list_tags()] == ["cats", "dogs"]
    assert all(c.bearer == TEST_ACCESS_TOKEN for c in fake_session.calls_to("GET", "/api/folders/"))
