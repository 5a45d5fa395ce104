import pytest

from execution.access import ADMIN, KEEPER, PauseSwitch, RoleRegistry, TrustedForwarder
from execution.collateral import PaperCollateralGateway
from execution.errors import Paused, TransferFailed, Unauthorized


class TestRoles:
    def test_initial_roles(self):
        roles = RoleRegistry(admin='root', keepers=['k1'])
        assert roles.has_role('root', ADMIN)
        assert roles.has_role('k1', KEEPER)
        assert not roles.has_role('k1', ADMIN)

    def test_admin_grants_and_revokes(self):
        roles = RoleRegistry(admin='root')
        roles.grant('root', 'k2', KEEPER)
        assert roles.has_role('k2', KEEPER)
        roles.revoke('root', 'k2', KEEPER)
        assert not roles.has_role('k2', KEEPER)

    def test_non_admin_cannot_grant(self):
        roles = RoleRegistry(admin='root')
        with pytest.raises(Unauthorized):
            roles.grant('mallory', 'mallory', KEEPER)
        assert not roles.has_role('mallory', KEEPER)


class TestPauseSwitch:
    def test_toggle_reports_change(self):
        switch = PauseSwitch()
        assert switch.set(True) is True
        assert switch.set(True) is False
        assert switch.is_paused()

    def test_require_live(self):
        switch = PauseSwitch(paused=True)
        with pytest.raises(Paused):
            switch.require_live()


class TestTrustedForwarder:
    def test_relayed_call_resolves_to_sender(self):
        fwd = TrustedForwarder(['relay'])
        assert fwd.resolve('relay', 'alice') == 'alice'

    def test_relay_without_tag_is_itself(self):
        fwd = TrustedForwarder(['relay'])
        assert fwd.resolve('relay') == 'relay'

    def test_untrusted_tag_ignored(self):
        fwd = TrustedForwarder(['relay'])
        assert fwd.resolve('mallory', 'alice') == 'mallory'


class TestPaperGateway:
    def test_pull_in_moves_to_pool(self):
        gw = PaperCollateralGateway()
        gw.deposit('alice', 100)
        gw.pull_in('alice', 60)
        assert gw.balance_of('alice') == 40
        assert gw.pool == 60

    def test_pull_in_insufficient(self):
        gw = PaperCollateralGateway()
        gw.deposit('alice', 10)
        with pytest.raises(TransferFailed):
            gw.pull_in('alice', 11)
        assert gw.balance_of('alice') == 10
        assert gw.pool == 0

    def test_push_out_needs_pool(self):
        gw = PaperCollateralGateway()
        gw.seed_pool(5)
        with pytest.raises(TransferFailed):
            gw.push_out('alice', 6)
        gw.push_out('alice', 5)
        assert gw.balance_of('alice') == 5

    def test_frozen_account_cannot_receive(self):
        gw = PaperCollateralGateway()
        gw.seed_pool(100)
        gw.freeze('bob')
        with pytest.raises(TransferFailed):
            gw.push_out('bob', 1)
        gw.unfreeze('bob')
        gw.push_out('bob', 1)
        assert gw.pool == 99
