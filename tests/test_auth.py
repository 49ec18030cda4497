"""Tests for FinWise.core.auth.AuthFlow against the fake backend."""
from FinWise.core.auth import AuthFlow
from FinWise.core.service import AuthMode
from FinWise.core.session import SessionState, SessionStore
from FinWise.ui.actions import signals
from tests.base import BaseBackendTestCase, SignalRecorder, settle, wait_until


class AuthFlowTest(BaseBackendTestCase):

    def setUp(self) -> None:
        super().setUp()
        self.storage = self.new_storage()
        self.session = SessionStore(self.storage, self.backend)
        self.flow = AuthFlow(self.session, self.backend)
        self.track(self.flow, self.session)

    def test_starts_in_login_mode(self):
        self.assertEqual(self.flow.mode, AuthMode.Login)
        self.assertFalse(self.flow.loading)
        self.assertEqual(self.flow.error, '')

    def test_login_success(self):
        authenticated = SignalRecorder(self.flow.authenticated)
        self.assertTrue(self.flow.submit(self.EMAIL, self.PASSWORD))
        wait_until(lambda: len(authenticated) == 1)

        self.assertFalse(self.flow.loading)
        self.assertEqual(self.flow.error, '')
        self.assertIsNotNone(self.session.credential)
        self.assertEqual(self.new_storage().get_token(), self.session.credential)

        wait_until(lambda: self.session.state == SessionState.Resolved)
        self.assertEqual(self.session.identity.name, 'Ana')

    def test_invalid_login_keeps_session_untouched(self):
        errors = SignalRecorder(self.flow.errorChanged)
        self.flow.submit(self.EMAIL, 'wrong')
        wait_until(lambda: not self.flow.loading)

        self.assertEqual(self.flow.error, 'Invalid credentials')
        self.assertEqual(errors.last, 'Invalid credentials')
        self.assertIsNone(self.session.credential)
        self.assertIsNone(self.new_storage().get_token())
        self.assertEqual(self.session.state, SessionState.LoggedOut)

    def test_error_is_cleared_on_next_submit(self):
        self.flow.submit(self.EMAIL, 'wrong')
        wait_until(lambda: not self.flow.loading)
        self.assertTrue(self.flow.error)

        self.flow.submit(self.EMAIL, self.PASSWORD)
        self.assertEqual(self.flow.error, '')
        wait_until(lambda: self.session.credential is not None)

    def test_register(self):
        modes = SignalRecorder(self.flow.modeChanged)
        self.flow.toggle_mode()
        self.assertEqual(self.flow.mode, AuthMode.Register)
        self.assertEqual(modes.last, 'register')

        self.flow.submit('bea@example.com', 'pw', name='Bea')
        wait_until(lambda: self.session.state == SessionState.Resolved)
        self.assertEqual(self.session.identity.name, 'Bea')

    def test_register_existing_email(self):
        self.flow.set_mode('register')
        self.flow.submit(self.EMAIL, 'pw', name='Ana')
        wait_until(lambda: not self.flow.loading)
        self.assertEqual(self.flow.error, 'Email already registered')

    def test_set_same_mode_is_silent(self):
        modes = SignalRecorder(self.flow.modeChanged)
        self.flow.set_mode(AuthMode.Login)
        self.assertEqual(len(modes), 0)
        with self.assertRaises(ValueError):
            self.flow.set_mode('oauth')

    def test_double_submit_is_ignored(self):
        gate = self.backend.hold('authenticate')
        loading = SignalRecorder(self.flow.loadingChanged)

        self.assertTrue(self.flow.submit(self.EMAIL, self.PASSWORD))
        self.assertTrue(gate.entered.wait(5))
        self.assertTrue(self.flow.loading)
        self.assertFalse(self.flow.submit(self.EMAIL, self.PASSWORD))

        gate.release()
        wait_until(lambda: not self.flow.loading)
        self.assertEqual(self.backend.calls['authenticate'], 1)
        self.assertEqual([c[0] for c in loading.calls], [True, False])

    def test_cancelled_submission_is_ignored(self):
        notices = SignalRecorder(signals.error)
        self.addCleanup(notices.disconnect)

        gate = self.backend.hold('authenticate')
        self.flow.submit(self.EMAIL, 'wrong')
        self.assertTrue(gate.entered.wait(5))

        self.flow.cancel()
        self.assertFalse(self.flow.loading)
        gate.release()
        self.flow.workers.wait(5000)
        settle()

        self.assertEqual(self.flow.error, '')
        self.assertEqual(notices.calls, [])
        self.assertIsNone(self.session.credential)

    def test_rejection_raises_one_notice(self):
        notices = SignalRecorder(signals.error)
        self.addCleanup(notices.disconnect)

        self.flow.submit(self.EMAIL, 'wrong')
        wait_until(lambda: not self.flow.loading)
        self.assertEqual(notices.calls, [('Invalid credentials',)])
