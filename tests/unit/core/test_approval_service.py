"""Tests for the approval service."""

import pytest
from datetime import datetime, timedelta

from passport.core.approval import ApprovalService, SupplierOnboardingPayload
from passport.core.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    TransactionError,
    ValidationError,
)
from passport.db.models import ApprovalRequest, PendingUser, SystemSetting, User

from tests.factories import (
    actor_for,
    create_approval_request,
    create_pending_user,
    create_user,
    make_wallet,
)


def onboarding_payload(**overrides) -> SupplierOnboardingPayload:
    fields = {
        "wallet_address": make_wallet(0xA11CE),
        "username": "bauxite_co",
        "requested_role": "miner",
        "email": "ops@bauxite.example",
        "company_name": "Bauxite Co",
        "company_type": "mining",
        "justification": "Primary ore supplier",
    }
    fields.update(overrides)
    return SupplierOnboardingPayload(**fields)


def config_request(service, actor, **overrides):
    kwargs = {
        "request_type": "system_configuration",
        "approver_role": "super_admin",
        "title": "Raise batch limit",
        "request_data": {"key": "max_batch_size", "value": 500},
    }
    kwargs.update(overrides)
    return service.create_request(actor, **kwargs)


class TestCreateRequest:

    def test_creates_pending_request(self, service, db_session, admin):
        result = config_request(service, admin)

        row = db_session.get(ApprovalRequest, result["id"])
        assert result["status"] == "pending"
        assert row.requested_by == admin.user_id
        assert row.approver_role == "super_admin"
        assert row.request_data == {"key": "max_batch_size", "value": 500}

    def test_default_expiry_is_seven_days(self, service, db_session, admin):
        result = config_request(service, admin)
        row = db_session.get(ApprovalRequest, result["id"])
        assert row.expires_at == row.created_at + timedelta(days=7)

    @pytest.mark.parametrize("days,expected", [(3, 3), (30, 30), (0, 7), (-2, 7), (None, 7)])
    def test_custom_expiry(self, service, db_session, admin, days, expected):
        result = config_request(service, admin, expires_in_days=days)
        row = db_session.get(ApprovalRequest, result["id"])
        assert row.expires_at == row.created_at + timedelta(days=expected)

    @pytest.mark.parametrize("days", [366, 10**7])
    def test_expiry_beyond_maximum_rejected(self, service, db_session, admin, days):
        with pytest.raises(ValidationError):
            config_request(service, admin, expires_in_days=days)
        assert db_session.query(ApprovalRequest).count() == 0

    def test_expiry_at_maximum_accepted(self, service, db_session, admin):
        result = config_request(service, admin, expires_in_days=365)
        row = db_session.get(ApprovalRequest, result["id"])
        assert row.expires_at == row.created_at + timedelta(days=365)

    def test_invalid_type_rejected_before_write(self, service, db_session, admin):
        with pytest.raises(ValidationError):
            config_request(service, admin, request_type="not_a_real_type")
        assert db_session.query(ApprovalRequest).count() == 0

    def test_invalid_approver_role(self, service, db_session, admin):
        with pytest.raises(ValidationError):
            config_request(service, admin, approver_role="overlord")
        assert db_session.query(ApprovalRequest).count() == 0

    def test_blank_title(self, service, admin):
        with pytest.raises(ValidationError):
            config_request(service, admin, title="   ")

    def test_malformed_request_data(self, service, db_session, admin):
        with pytest.raises(ValidationError):
            config_request(service, admin, request_type="user_role_change", request_data={"user_id": 1})
        assert db_session.query(ApprovalRequest).count() == 0

    def test_below_admin_cannot_create(self, service, db_session, viewer):
        with pytest.raises(AuthorizationError):
            config_request(service, viewer)
        assert db_session.query(ApprovalRequest).count() == 0

    def test_notifies_approver_role_and_audits(self, service, notifier, auditor, admin):
        result = config_request(service, admin, approver_role="auditor")

        assert notifier.calls[0]["recipients"] == ["super_admin", "admin", "certifier", "auditor"]
        assert notifier.calls[0]["event"] == "approval_pending"
        assert notifier.calls[0]["summary"]["request_id"] == result["id"]

        entry = auditor.entries[0]
        assert entry["action"] == "CREATE"
        assert entry["actor_id"] == admin.user_id
        assert entry["resource_type"] == "approval_request"
        assert entry["resource_id"] == result["id"]

    def test_notification_failure_does_not_roll_back(self, db_session, admin):
        class BrokenNotifier:
            def notify(self, recipients, event_kind, summary):
                raise RuntimeError("smtp down")

        service = ApprovalService(db_session, notifier=BrokenNotifier())
        result = config_request(service, admin)
        assert db_session.get(ApprovalRequest, result["id"]) is not None


class TestSupplierOnboarding:

    def test_scenario_a(self, service, db_session, admin):
        """Admin requests onboarding of a miner."""
        result = service.request_supplier_onboarding(admin, onboarding_payload())

        assert result["status"] == "pending_super_admin_approval"
        assert result["approver_role"] == "super_admin"
        assert result["temporary_password"]

        pending = db_session.query(PendingUser).filter(
            PendingUser.approval_request_id == result["request_id"]
        ).one()
        assert pending.username == "bauxite_co"
        assert pending.requested_role == "miner"
        assert pending.status == "pending"
        assert pending.password_hash != result["temporary_password"]

        request = db_session.get(ApprovalRequest, result["request_id"])
        assert request.title == "Supplier Onboarding: Bauxite Co (miner)"
        assert request.request_type == "supplier_onboarding"
        assert request.status == "pending"

    def test_temporary_password_verifies(self, service, db_session, admin):
        from passport.core.security import verify_password

        result = service.request_supplier_onboarding(admin, onboarding_payload())
        pending = db_session.query(PendingUser).one()
        assert verify_password(result["temporary_password"], pending.password_hash)

    def test_requires_admin(self, service, db_session, user_factory):
        certifier = actor_for(user_factory(role="certifier"))
        with pytest.raises(AuthorizationError):
            service.request_supplier_onboarding(certifier, onboarding_payload())
        assert db_session.query(PendingUser).count() == 0

    @pytest.mark.parametrize("role", ["admin", "viewer", "auditor", "super_admin", "pirate"])
    def test_non_supplier_role(self, service, admin, role):
        with pytest.raises(ValidationError):
            service.request_supplier_onboarding(admin, onboarding_payload(requested_role=role))

    @pytest.mark.parametrize("wallet", [
        "",
        "0x123",
        "1x" + "a" * 40,
        "0x" + "a" * 39,
        "0x" + "a" * 41,
        "0x" + "g" * 40,
    ])
    def test_bad_wallet(self, service, db_session, admin, wallet):
        with pytest.raises(ValidationError):
            service.request_supplier_onboarding(admin, onboarding_payload(wallet_address=wallet))
        assert db_session.query(ApprovalRequest).count() == 0

    def test_missing_username(self, service, admin):
        with pytest.raises(ValidationError):
            service.request_supplier_onboarding(admin, onboarding_payload(username=" "))

    def test_existing_username_conflict(self, service, admin, user_factory):
        user_factory(username="bauxite_co")
        with pytest.raises(ConflictError):
            service.request_supplier_onboarding(admin, onboarding_payload())

    def test_existing_wallet_conflict_ignores_case(self, service, admin, user_factory):
        wallet = "0x" + "ab" * 20
        user_factory(wallet_address=wallet)
        with pytest.raises(ConflictError):
            service.request_supplier_onboarding(admin, onboarding_payload(wallet_address=wallet.upper().replace("0X", "0x")))

    def test_duplicate_pending_onboarding_conflict(self, service, admin):
        service.request_supplier_onboarding(admin, onboarding_payload())
        with pytest.raises(ConflictError):
            service.request_supplier_onboarding(admin, onboarding_payload(email=None))

    def test_concurrent_onboarding_for_same_identity(self, session_factory, admin, monkeypatch):
        """Both callers pass the identity check; the unique index stops the second insert."""
        first = ApprovalService(session_factory())
        second = ApprovalService(session_factory())
        monkeypatch.setattr(second, "_ensure_identity_available", lambda *args: None)

        first.request_supplier_onboarding(admin, onboarding_payload())
        with pytest.raises(ConflictError):
            second.request_supplier_onboarding(
                admin,
                onboarding_payload(username="other_name", email=None,
                                   wallet_address=make_wallet(0xA11CE).upper().replace("0X", "0x")),
            )

        check = session_factory()
        assert check.query(ApprovalRequest).count() == 1
        assert check.query(PendingUser).count() == 1
        check.close()
        first.db.close()
        second.db.close()

    def test_expired_onboarding_does_not_block(self, service, db_session, admin):
        first = service.request_supplier_onboarding(admin, onboarding_payload())
        request = db_session.get(ApprovalRequest, first["request_id"])
        request.expires_at = datetime.utcnow() - timedelta(minutes=1)
        db_session.commit()

        second = service.request_supplier_onboarding(admin, onboarding_payload())
        assert second["request_id"] != first["request_id"]

    def test_store_failure_rolls_back_both_rows(self, db_session, admin, monkeypatch):
        from sqlalchemy.exc import OperationalError

        service = ApprovalService(db_session)
        real_flush = db_session.flush
        calls = {"n": 0}

        def flaky_flush(*args, **kwargs):
            calls["n"] += 1
            if calls["n"] == 2:
                raise OperationalError("INSERT INTO pending_users", {}, Exception("disk I/O error"))
            return real_flush(*args, **kwargs)

        monkeypatch.setattr(db_session, "flush", flaky_flush)
        with pytest.raises(TransactionError):
            service.request_supplier_onboarding(admin, onboarding_payload())
        monkeypatch.undo()

        assert db_session.query(ApprovalRequest).count() == 0
        assert db_session.query(PendingUser).count() == 0


class TestDecide:

    def test_scenario_b(self, service, db_session, admin, super_admin):
        """Super admin approves the onboarding; a miner account appears."""
        created = service.request_supplier_onboarding(admin, onboarding_payload())

        result = service.decide(super_admin, created["request_id"], "approve", reason="verified KYC")

        assert result["status"] == "approved"
        assert result["approved_by"] == super_admin.user_id
        assert result["approval_reason"] == "verified KYC"
        assert result["rejection_reason"] is None
        assert result["approved_at"] is not None

        user = db_session.query(User).filter(User.username == "bauxite_co").one()
        assert user.role == "miner"
        assert user.is_active
        assert user.wallet_address == make_wallet(0xA11CE)

        pending = db_session.query(PendingUser).one()
        assert pending.status == "activated"
        assert pending.user_id == user.id

    def test_scenario_c(self, service, db_session, admin, viewer):
        """A viewer cannot decide a super admin request."""
        created = service.request_supplier_onboarding(admin, onboarding_payload())

        with pytest.raises(AuthorizationError):
            service.decide(viewer, created["request_id"], "approve")

        db_session.expire_all()
        assert db_session.get(ApprovalRequest, created["request_id"]).status == "pending"
        assert db_session.query(User).filter(User.username == "bauxite_co").count() == 0

    def test_reject_sets_only_rejection_reason(self, service, db_session, admin, super_admin):
        created = service.request_supplier_onboarding(admin, onboarding_payload())
        result = service.reject(super_admin, created["request_id"], reason="incomplete KYC")

        assert result["status"] == "rejected"
        assert result["rejection_reason"] == "incomplete KYC"
        assert result["approval_reason"] is None
        assert result["approved_by"] == super_admin.user_id
        assert db_session.query(PendingUser).one().status == "discarded"
        assert db_session.query(User).filter(User.username == "bauxite_co").count() == 0

    def test_equal_level_can_approve(self, service, db_session, admin, user_factory):
        created = config_request(service, admin, approver_role="admin")
        other_admin = actor_for(user_factory(role="admin"))
        assert service.approve(other_admin, created["id"])["status"] == "approved"

    def test_invalid_action(self, service, admin, super_admin):
        created = config_request(service, admin)
        with pytest.raises(ValidationError):
            service.decide(super_admin, created["id"], "expire")
        with pytest.raises(ValidationError):
            service.decide(super_admin, created["id"], "maybe")

    def test_invalid_action_checked_before_lookup(self, service, super_admin):
        with pytest.raises(ValidationError):
            service.decide(super_admin, 424242, "maybe")

    def test_not_found(self, service, super_admin):
        with pytest.raises(NotFoundError):
            service.decide(super_admin, 424242, "approve")

    @pytest.mark.parametrize("first,second", [
        ("approve", "approve"),
        ("approve", "reject"),
        ("reject", "approve"),
        ("reject", "reject"),
    ])
    def test_terminality(self, service, db_session, auditor, admin, super_admin, first, second):
        created = config_request(service, admin)
        service.decide(super_admin, created["id"], first, reason="first")
        entries_before = len(auditor.entries)
        snapshot = db_session.get(ApprovalRequest, created["id"])
        before = (snapshot.status, snapshot.approval_reason, snapshot.rejection_reason, snapshot.updated_at)

        with pytest.raises(ConflictError):
            service.decide(super_admin, created["id"], second, reason="second")

        db_session.expire_all()
        row = db_session.get(ApprovalRequest, created["id"])
        assert (row.status, row.approval_reason, row.rejection_reason, row.updated_at) == before
        assert len(auditor.entries) == entries_before

    def test_expired_request_conflicts_without_sweep(self, service, db_session, admin, super_admin):
        created = config_request(service, admin)
        row = db_session.get(ApprovalRequest, created["id"])
        row.expires_at = datetime.utcnow() - timedelta(seconds=5)
        db_session.commit()

        with pytest.raises(ConflictError):
            service.decide(super_admin, created["id"], "approve")

        db_session.expire_all()
        row = db_session.get(ApprovalRequest, created["id"])
        assert row.status == "pending"  # stored value untouched
        assert db_session.query(SystemSetting).count() == 0

    def test_effect_failure_keeps_request_pending(self, service, db_session, admin, super_admin, user_factory):
        """Activation collides with a user created after the request."""
        created = service.request_supplier_onboarding(admin, onboarding_payload())
        # The same wallet gets registered by another path in the meantime
        user_factory(username="squatter", wallet_address=make_wallet(0xA11CE))

        with pytest.raises(TransactionError):
            service.approve(super_admin, created["request_id"], reason="verified KYC")

        db_session.expire_all()
        request = db_session.get(ApprovalRequest, created["request_id"])
        assert request.status == "pending"
        assert request.approved_by is None
        assert request.approval_reason is None
        assert db_session.query(PendingUser).one().status == "pending"
        assert db_session.query(User).filter(User.username == "bauxite_co").count() == 0

    def test_onboarding_without_pending_user_stays_pending(self, service, db_session, admin, super_admin):
        created = service.create_request(
            admin,
            request_type="supplier_onboarding",
            approver_role="super_admin",
            title="Bare onboarding",
        )
        with pytest.raises(ValidationError):
            service.approve(super_admin, created["id"])

        db_session.expire_all()
        assert db_session.get(ApprovalRequest, created["id"]).status == "pending"

    def test_role_change_effect(self, service, db_session, admin, super_admin, user_factory):
        target = user_factory(role="viewer")
        created = service.create_request(
            admin,
            request_type="user_role_change",
            approver_role="super_admin",
            title="Promote to auditor",
            request_data={"user_id": target.id, "new_role": "auditor"},
        )
        result = service.approve(super_admin, created["id"])

        assert result["effect"]["new_role"] == "auditor"
        db_session.expire_all()
        assert db_session.get(User, target.id).role == "auditor"

    def test_configuration_effect(self, service, db_session, admin, super_admin):
        created = config_request(service, admin)
        service.approve(super_admin, created["id"])

        setting = db_session.query(SystemSetting).filter(SystemSetting.key == "max_batch_size").one()
        assert setting.value == 500
        assert setting.updated_by == super_admin.user_id

    def test_notifies_requester_and_audits(self, service, notifier, auditor, admin, super_admin):
        created = config_request(service, admin)
        service.reject(super_admin, created["id"], reason="not now")

        last = notifier.calls[-1]
        assert last["recipients"] == [admin.user_id]
        assert last["event"] == "approval_rejected"
        assert last["summary"]["reason"] == "not now"

        entry = auditor.entries[-1]
        assert entry["action"] == "REJECT"
        assert entry["actor_id"] == super_admin.user_id
        assert entry["old_values"] == {"status": "pending"}
        assert entry["new_values"]["status"] == "rejected"

    def test_race_loser_gets_conflict(self, session_factory, admin, super_admin, user_factory):
        """Two deciders load the same pending row; only the first write wins."""
        other = actor_for(user_factory(role="super_admin"))

        setup = session_factory()
        created = config_request(ApprovalService(setup), admin)
        setup.close()

        winner_db = session_factory()
        loser_db = session_factory()
        winner = ApprovalService(winner_db)
        loser = ApprovalService(loser_db)

        # The loser read the row while it was still pending
        stale = loser_db.get(ApprovalRequest, created["id"])
        assert stale.status == "pending"
        loser._lock_request = lambda request_id: loser_db.get(ApprovalRequest, request_id)

        assert winner.approve(super_admin, created["id"], reason="first")["status"] == "approved"
        with pytest.raises(ConflictError):
            loser.reject(other, created["id"], reason="second")

        check = session_factory()
        row = check.get(ApprovalRequest, created["id"])
        assert row.status == "approved"
        assert row.approved_by == super_admin.user_id
        assert row.rejection_reason is None
        for db in (winner_db, loser_db, check):
            db.close()

    def test_sequential_deciders_exactly_one_wins(self, session_factory, admin, super_admin, user_factory):
        other = actor_for(user_factory(role="super_admin"))
        setup = session_factory()
        created = config_request(ApprovalService(setup), admin)
        setup.close()

        outcomes = []
        for actor, action in ((super_admin, "reject"), (other, "approve")):
            db = session_factory()
            try:
                ApprovalService(db).decide(actor, created["id"], action)
                outcomes.append(action)
            except ConflictError:
                outcomes.append("conflict")
            finally:
                db.close()

        assert outcomes == ["reject", "conflict"]


@pytest.fixture
def populated(db_session, admin, viewer, user_factory):
    admin_user = db_session.get(User, admin.user_id)
    viewer_user = db_session.get(User, viewer.user_id)
    now = datetime.utcnow()
    rows = {
        "sa_pending": create_approval_request(db_session, requested_by=admin_user, approver_role="super_admin"),
        "viewer_pending": create_approval_request(db_session, requested_by=admin_user, approver_role="viewer"),
        "own_request": create_approval_request(db_session, requested_by=viewer_user, approver_role="admin"),
        "expired": create_approval_request(
            db_session, requested_by=admin_user, approver_role="viewer",
            created_at=now - timedelta(days=10), expires_at=now - timedelta(days=3),
        ),
        "approved": create_approval_request(
            db_session, requested_by=admin_user, approver_role="viewer", status="approved",
        ),
    }
    db_session.commit()
    return rows


class TestListRequests:

    def test_admin_sees_all(self, service, admin, populated):
        result = service.list_requests(admin)
        assert result["total"] == 5

    def test_view_policy_for_low_roles(self, service, viewer, populated):
        ids = {item["id"] for item in service.list_requests(viewer)["items"]}
        assert populated["own_request"].id in ids
        assert populated["viewer_pending"].id in ids
        assert populated["sa_pending"].id not in ids

    def test_for_approval(self, service, viewer, populated):
        result = service.list_requests(viewer, for_approval=True)
        assert [item["id"] for item in result["items"]] == [populated["viewer_pending"].id]

    def test_for_approval_super_admin(self, service, super_admin, populated):
        ids = {item["id"] for item in service.list_requests(super_admin, for_approval=True)["items"]}
        assert ids == {populated["sa_pending"].id, populated["viewer_pending"].id, populated["own_request"].id}

    def test_status_filter_honours_expiry(self, service, admin, populated):
        pending = {i["id"] for i in service.list_requests(admin, status="pending")["items"]}
        expired = service.list_requests(admin, status="expired")["items"]

        assert populated["expired"].id not in pending
        assert [i["id"] for i in expired] == [populated["expired"].id]
        assert expired[0]["status"] == "expired"

    def test_type_filter(self, service, admin, populated):
        assert service.list_requests(admin, request_type="user_role_change")["total"] == 0
        assert service.list_requests(admin, request_type="system_configuration")["total"] == 5

    def test_invalid_filters(self, service, admin):
        with pytest.raises(ValidationError):
            service.list_requests(admin, status="limbo")
        with pytest.raises(ValidationError):
            service.list_requests(admin, request_type="nope")

    def test_pagination(self, service, admin, populated):
        result = service.list_requests(admin, page=2, limit=2)
        assert result["page"] == 2
        assert result["limit"] == 2
        assert len(result["items"]) == 2
        assert result["total_pages"] == 3

    @pytest.mark.parametrize("page,limit,expected", [
        (0, 20, (1, 20)),
        (-3, 5, (1, 5)),
        (1, 0, (1, 20)),
        (1, 101, (1, 20)),
        (1, 100, (1, 100)),
    ])
    def test_pagination_normalised(self, service, admin, page, limit, expected):
        result = service.list_requests(admin, page=page, limit=limit)
        assert (result["page"], result["limit"]) == expected
        assert result["total_pages"] == 0


class TestGetRequest:

    def test_get_includes_pending_user(self, service, admin, super_admin):
        created = service.request_supplier_onboarding(admin, onboarding_payload())
        result = service.get_request(super_admin, created["request_id"])
        assert result["pending_user"]["username"] == "bauxite_co"
        assert "password_hash" not in result["pending_user"]

    def test_not_found(self, service, admin):
        with pytest.raises(NotFoundError):
            service.get_request(admin, 999)

    def test_outside_view_policy(self, service, admin, viewer):
        created = config_request(service, admin)
        with pytest.raises(AuthorizationError):
            service.get_request(viewer, created["id"])

    def test_requester_can_view(self, db_session, service, viewer):
        row = create_approval_request(db_session, requested_by=db_session.get(User, viewer.user_id))
        db_session.commit()
        assert service.get_request(viewer, row.id)["id"] == row.id

    def test_list_is_audited(self, service, auditor, admin, populated):
        service.list_requests(admin, status="pending", page=1, limit=10)

        entry = auditor.entries[-1]
        assert entry["action"] == "VIEW"
        assert entry["resource_type"] == "approval_requests"
        assert entry["resource_id"] is None
        assert entry["actor_id"] == admin.user_id
        assert entry["details"]["status"] == "pending"

    def test_audits_view(self, service, auditor, admin):
        created = config_request(service, admin)
        service.get_request(admin, created["id"])
        assert auditor.actions()[-1] == "VIEW"


class TestExpireStaleRequests:

    def test_persists_expired(self, service, db_session, notifier, auditor, admin):
        admin_user = db_session.get(User, admin.user_id)
        now = datetime.utcnow()
        stale = create_approval_request(
            db_session, requested_by=admin_user, request_type="supplier_onboarding", request_data={},
            created_at=now - timedelta(days=8), expires_at=now - timedelta(days=1),
        )
        pending_user = create_pending_user(db_session, stale)
        fresh = create_approval_request(db_session, requested_by=admin_user)
        db_session.commit()

        assert service.expire_stale_requests() == 1

        db_session.expire_all()
        assert db_session.get(ApprovalRequest, stale.id).status == "expired"
        assert db_session.get(ApprovalRequest, fresh.id).status == "pending"
        assert db_session.get(PendingUser, pending_user.id).status == "discarded"

        assert notifier.calls[-1]["event"] == "approval_expired"
        entry = auditor.entries[-1]
        assert entry["action"] == "EXPIRE"
        assert entry["actor_id"] is None
        assert entry["actor_role"] == "system"

    def test_nothing_to_expire(self, service):
        assert service.expire_stale_requests() == 0
