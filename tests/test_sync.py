"""Tests for FinWise.core.sync.DashboardSynchronizer: consistency and ordering of dashboard loads."""
from FinWise.core.session import SessionStore
from FinWise.core.sync import DashboardSynchronizer
from FinWise.data.model import Snapshot
from FinWise.status import status
from FinWise.ui.actions import signals
from tests.base import BaseBackendTestCase, SignalRecorder, settle, wait_until


class DashboardSynchronizerTest(BaseBackendTestCase):

    def setUp(self) -> None:
        super().setUp()
        self.backend.transactions[self.EMAIL].extend([
            {'id': 't1', 'type': 'income', 'amount': 1000.0, 'category': 'Salary',
             'date': '2024-03-01T00:00:00.000Z', 'note': ''},
            {'id': 't2', 'type': 'expense', 'amount': 250.0, 'category': 'Rent',
             'date': '2024-03-02T00:00:00.000Z', 'note': 'march'},
        ])
        self.backend.goals[self.EMAIL].append(
            {'id': 'g1', 'name': 'Trip', 'target_amount': 1000.0, 'current_amount': 250.0, 'deadline': None}
        )

        self.session = SessionStore(self.new_storage(), self.backend)
        self.sync = DashboardSynchronizer(self.session, self.backend)
        self.track(self.session, self.sync)

        self.published = SignalRecorder(self.sync.snapshotChanged)
        self.failed = SignalRecorder(self.sync.loadFailed)
        self.session.login(self.token)

    def test_starts_empty(self):
        self.assertEqual(self.sync.snapshot, Snapshot.empty())
        self.assertEqual(self.sync.snapshot.token, 0)
        self.assertFalse(self.sync.is_loading)

    def test_load_publishes_snapshot(self):
        loading = SignalRecorder(self.sync.loadingChanged)
        fetched = SignalRecorder(signals.dataFetched)
        self.addCleanup(fetched.disconnect)

        token = self.sync.load_all()
        self.assertTrue(self.sync.is_loading)
        wait_until(lambda: self.sync.snapshot.token == token)

        snapshot = self.sync.snapshot
        self.assertEqual(snapshot.summary.income, 1000.0)
        self.assertEqual(snapshot.summary.expenses, 250.0)
        self.assertEqual(snapshot.summary.savings, 750.0)
        self.assertEqual([t.id for t in snapshot.transactions], ['t1', 't2'])
        self.assertEqual(snapshot.goals[0].percent, 25)

        self.assertFalse(self.sync.is_loading)
        self.assertEqual([c[0] for c in loading.calls], [True, False])
        self.assertEqual(len(self.published), 1)
        self.assertIs(fetched.last, snapshot)

    def test_repeated_loads_are_idempotent(self):
        first = self.sync.load_all()
        wait_until(lambda: self.sync.snapshot.token == first)
        previous = self.sync.snapshot

        second = self.sync.load_all()
        wait_until(lambda: self.sync.snapshot.token == second)
        self.assertGreater(second, first)
        self.assertEqual(self.sync.snapshot, previous)

    def test_partial_failure_keeps_previous_snapshot(self):
        first = self.sync.load_all()
        wait_until(lambda: self.sync.snapshot.token == first)
        previous = self.sync.snapshot

        self.backend.fail_next('fetch_goals', lambda: status.ServerError('down', status_code=500))
        self.sync.load_all()
        wait_until(lambda: len(self.failed) == 1)
        settle()

        self.assertIsInstance(self.failed.last, status.ServerError)
        self.assertIs(self.sync.snapshot, previous)
        self.assertEqual(len(self.published), 1)
        self.assertFalse(self.sync.is_loading)

    def test_slow_earlier_load_never_overwrites_newer(self):
        gate = self.backend.hold('fetch_summary')
        first = self.sync.load_all()
        self.assertTrue(gate.entered.wait(5))

        self.backend.transactions[self.EMAIL].pop()
        second = self.sync.load_all()
        wait_until(lambda: self.sync.snapshot.token == second)
        self.assertTrue(self.sync.is_loading)

        gate.release()
        wait_until(lambda: not self.sync.is_loading)
        settle()

        self.assertLess(first, second)
        self.assertEqual(self.sync.snapshot.token, second)
        self.assertEqual(len(self.sync.snapshot.transactions), 1)
        self.assertEqual(len(self.published), 1)

    def test_failure_of_superseded_load_is_not_reported(self):
        gate = self.backend.hold('fetch_summary', error=lambda: status.NetworkError('timed out'))
        self.sync.load_all()
        self.assertTrue(gate.entered.wait(5))

        second = self.sync.load_all()
        wait_until(lambda: self.sync.snapshot.token == second)
        gate.release()
        wait_until(lambda: not self.sync.is_loading)
        settle()

        self.assertEqual(len(self.failed), 0)
        self.assertEqual(self.sync.snapshot.token, second)

    def test_load_without_credential_fails(self):
        self.session.logout()
        self.sync.load_all()
        self.assertEqual(len(self.failed), 1)
        self.assertIsInstance(self.failed.last, status.CredentialNotFoundError)
        self.assertFalse(self.sync.is_loading)

    def test_logout_resets_snapshot(self):
        token = self.sync.load_all()
        wait_until(lambda: self.sync.snapshot.token == token)

        self.session.logout()
        self.assertEqual(self.sync.snapshot, Snapshot.empty())
        self.assertEqual(self.published.last, Snapshot.empty())

    def test_load_finishing_after_logout_is_discarded(self):
        gate = self.backend.hold('fetch_goals')
        self.sync.load_all()
        self.assertTrue(gate.entered.wait(5))

        self.session.logout()
        self.assertFalse(self.sync.is_loading)
        gate.release()
        settle()

        self.assertEqual(self.sync.snapshot, Snapshot.empty())
        self.assertEqual(len(self.failed), 0)

    def test_new_session_does_not_see_previous_data(self):
        token = self.sync.load_all()
        wait_until(lambda: self.sync.snapshot.token == token)

        other = self.backend.add_user('Bea', 'bea@example.com', 'pw')
        self.session.login(other)
        self.assertEqual(self.sync.snapshot, Snapshot.empty())

        token = self.sync.load_all()
        wait_until(lambda: self.sync.snapshot.token == token)
        self.assertEqual(self.sync.snapshot.transactions, ())
        self.assertEqual(self.sync.snapshot.summary.income, 0.0)

    def test_failure_after_logout_raises_no_notice(self):
        notices = SignalRecorder(signals.error)
        self.addCleanup(notices.disconnect)

        gate = self.backend.hold('fetch_goals', error=lambda: status.ServerError('old session'))
        self.sync.load_all()
        self.assertTrue(gate.entered.wait(5))

        self.session.logout()
        gate.release()
        self.sync.workers.wait(5000)
        settle()

        self.assertEqual(len(self.failed), 0)
        self.assertEqual(notices.calls, [])

    def test_superseded_failure_raises_no_notice(self):
        notices = SignalRecorder(signals.error)
        self.addCleanup(notices.disconnect)

        gate = self.backend.hold('fetch_summary', error=lambda: status.NetworkError('timed out'))
        self.sync.load_all()
        self.assertTrue(gate.entered.wait(5))
        second = self.sync.load_all()
        wait_until(lambda: self.sync.snapshot.token == second)

        gate.release()
        wait_until(lambda: not self.sync.is_loading)
        settle()
        self.assertEqual(notices.calls, [])

    def test_current_failure_raises_one_notice(self):
        notices = SignalRecorder(signals.error)
        self.addCleanup(notices.disconnect)

        self.backend.fail_next('fetch_transactions', lambda: status.ServerError('down', status_code=503))
        self.sync.load_all()
        wait_until(lambda: len(self.failed) == 1)
        settle()
        self.assertEqual(notices.calls, [('down',)])
