import pytest

from app import build_services
from errors import InsufficientFunds, InvalidInput, PostNotFound, QuotaExceeded, StoreError
from gateway import PersistenceGateway
from ledger import BALANCE, UNCLAIMED
from local_store import LocalStore

DAY = "2026-10-19"


class HighlightFailingLocalStore(LocalStore):
    def set_post_highlighted(self, post_id):
        raise OSError("disk gone")


def _post(services, wallet="w", text="a resonant thought", intent=False, context="tab", day=DAY):
    return services["posts"].create_post(wallet, text, intent_modifier_active=intent, context_id=context, day=day)


class TestCreatePost:
    def test_credits_unclaimed_and_appends(self, services):
        result = _post(services, intent=True)
        assert result["post"]["reward"] == 7
        assert result["post"]["wallet"] == "w"
        assert result["used_today"] == 1
        assert result["daily_limit"] == 3
        assert services["ledger"].read("w", UNCLAIMED) == 7
        assert services["posts"].list_posts()[0]["text"] == "a resonant thought"

    def test_fourth_post_rejected_without_effects(self, services):
        for i in range(3):
            _post(services, text=f"post {i}")
        with pytest.raises(QuotaExceeded):
            _post(services, text="one too many")

        assert services["ledger"].read("w", UNCLAIMED) == 15
        posts = services["posts"].list_posts()
        assert len(posts) == 3
        assert all(p["text"] != "one too many" for p in posts)

    def test_quota_resets_with_new_day_key(self, services):
        for i in range(3):
            _post(services, text=f"post {i}")
        assert _post(services, day="2026-10-20")["used_today"] == 1

    def test_guest_post_uses_shadow_counter(self, services):
        result = _post(services, wallet=None, intent=True, context="guest-tab")
        assert result["post"]["wallet"] is None
        assert services["quota"].shadow_total("guest-tab") == 7
        assert services["ledger"].read("guest-tab", UNCLAIMED) == 0

    @pytest.mark.parametrize("text", ["", "   ", None, "x" * 241])
    def test_rejects_bad_text(self, services, text):
        with pytest.raises(InvalidInput):
            _post(services, text=text)
        assert services["posts"].list_posts() == []
        assert services["quota"].used_today("tab", DAY) == 0

    def test_text_is_trimmed(self, services):
        result = _post(services, text="  " + "y" * 240 + "  ")
        assert result["post"]["text"] == "y" * 240

    def test_ids_increase(self, services):
        first = _post(services, text="one")["post"]["id"]
        second = _post(services, text="two")["post"]["id"]
        assert second > first


class TestResonate:
    def test_increments_counter(self, services):
        post_id = _post(services)["post"]["id"]
        assert services["posts"].resonate(post_id) is True
        assert services["posts"].resonate(post_id) is True
        assert services["posts"].list_posts()[0]["resonates"] == 2

    def test_unknown_post_is_noop(self, services):
        assert services["posts"].resonate(424242) is False

    def test_bad_id(self, services):
        with pytest.raises(InvalidInput):
            services["posts"].resonate("abc")


class TestSacrifice:
    def test_debits_and_highlights(self, services):
        post_id = _post(services)["post"]["id"]
        services["ledger"].credit("w", BALANCE, 25)
        result = services["posts"].sacrifice("w", post_id)
        assert result["balance"] == 5
        assert services["ledger"].read("w", BALANCE) == 5
        assert services["posts"].list_posts()[0]["highlighted"] is True

    def test_insufficient_funds_changes_nothing(self, services):
        post_id = _post(services)["post"]["id"]
        services["ledger"].credit("w", BALANCE, 10)
        with pytest.raises(InsufficientFunds):
            services["posts"].sacrifice("w", post_id)
        assert services["ledger"].read("w", BALANCE) == 10
        assert services["posts"].list_posts()[0]["highlighted"] is False

    def test_requires_wallet(self, services):
        with pytest.raises(InvalidInput):
            services["posts"].sacrifice(None, 1)

    def test_missing_post_refunds(self, services):
        services["ledger"].credit("w", BALANCE, 20)
        with pytest.raises(PostNotFound):
            services["posts"].sacrifice("w", 999)
        assert services["ledger"].read("w", BALANCE) == 20

    def test_store_failure_after_debit_refunds(self, local_url):
        gw = PersistenceGateway(HighlightFailingLocalStore(local_url))
        try:
            services = build_services(gw)
            services["ledger"].credit("w", BALANCE, 25)
            with pytest.raises(StoreError):
                services["posts"].sacrifice("w", 1)
            assert services["ledger"].read("w", BALANCE) == 25
        finally:
            gw.close()
