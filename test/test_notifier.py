#!/usr/bin/env python3
import threading
import unittest
from unittest.mock import Mock

from exception_notifier import ExceptionNotifier, ExceptionRecord
from exception_notifier.services import LogNotifier


class ExceptionOne(Exception):
    pass


def raised(exc):
    try:
        raise exc
    except Exception as e:
        return e


class TestExceptionNotifier(unittest.TestCase):
    def setUp(self):
        self.notifier = ExceptionNotifier(testing_mode=False)
        self.notifier_calls = 0

        def test_notifier(record, options):
            self.notifier_calls += 1

        self.test_notifier = test_notifier

    def tearDown(self):
        self.notifier.reset()

    def test_has_default_ignored_exceptions(self):
        self.assertIn('werkzeug.exceptions.NotFound', self.notifier.ignored_exceptions)
        self.assertIn('werkzeug.exceptions.MethodNotAllowed', self.notifier.ignored_exceptions)

    def test_has_log_notifier_registered(self):
        self.assertEqual(self.notifier.notifiers, ['log'])
        self.assertIsInstance(self.notifier.registered_notifier('log'), LogNotifier)

    def test_register_and_unregister_notifier(self):
        called = []
        self.notifier.register('proc', lambda record, options: called.append(record))
        self.assertEqual(sorted(self.notifier.notifiers), ['log', 'proc'])

        self.assertTrue(self.notifier.notify(raised(RuntimeError('boom'))))
        self.assertEqual(len(called), 1)

        self.notifier.unregister('proc')
        self.assertEqual(self.notifier.notifiers, ['log'])

    def test_register_then_unregister_leaves_names_unchanged(self):
        before = set(self.notifier.notifiers)
        self.notifier.register('log', LogNotifier())
        self.notifier.register('extra', self.test_notifier)
        self.notifier.unregister('extra')
        self.assertEqual(set(self.notifier.notifiers), before)

    def test_select_notifiers_to_send_error_to(self):
        calls = {'notifier1': 0, 'notifier2': 0}

        def make(name):
            def notifier(record, options):
                calls[name] += 1
            return notifier

        self.notifier.register('notifier1', make('notifier1'))
        self.notifier.register('notifier2', make('notifier2'))
        exception = raised(ExceptionOne('error'))

        self.notifier.notify(exception)
        self.assertEqual(calls, {'notifier1': 1, 'notifier2': 1})

        self.notifier.notify(exception, {'notifiers': 'notifier1'})
        self.assertEqual(calls, {'notifier1': 2, 'notifier2': 1})

        self.notifier.notify(exception, {'notifiers': ['notifier2']})
        self.assertEqual(calls, {'notifier1': 2, 'notifier2': 2})

    def test_notifiers_receive_record_and_copy_of_options(self):
        received = []
        self.notifier.register('a', lambda record, options: (received.append((record, options)), options.update(x=1)))
        self.notifier.register('b', lambda record, options: received.append((record, options)))
        options = {'notifiers': ['a', 'b'], 'data': {'user': 42}}

        self.notifier.notify(raised(ExceptionOne('error')), options)

        (record_a, opts_a), (record_b, opts_b) = received
        self.assertIsInstance(record_a, ExceptionRecord)
        self.assertEqual(record_a.type_name, f"{__name__}.ExceptionOne")
        self.assertEqual(opts_a['data'], {'user': 42})
        self.assertNotIn('notifiers', opts_b)
        self.assertNotIn('x', opts_b, "cada notificador recebe sua própria cópia das opções")
        self.assertIn('notifiers', options)

    def test_ignore_if_condition(self):
        env = {'name': 'production'}
        self.notifier.ignore_if(lambda record, options: env['name'] != 'production')
        self.notifier.register('test', self.test_notifier)
        exception = raised(ExceptionOne('error'))

        self.assertTrue(self.notifier.notify(exception, {'notifiers': 'test'}))
        self.assertEqual(self.notifier_calls, 1)

        env['name'] = 'development'
        self.assertFalse(self.notifier.notify(exception, {'notifiers': 'test'}))
        self.assertEqual(self.notifier_calls, 1)

        self.notifier.clear_ignore_conditions()
        self.assertTrue(self.notifier.notify(exception, {'notifiers': 'test'}))
        self.assertEqual(self.notifier_calls, 2)

    def test_ignore_if_used_as_decorator(self):
        @self.notifier.ignore_if
        def always(record, options):
            return True

        self.assertTrue(callable(always))
        self.assertFalse(self.notifier.notify(raised(ExceptionOne('error'))))

    def test_ignore_exceptions_option(self):
        self.notifier.register('test', self.test_notifier)
        exception = raised(RuntimeError('boom'))

        self.notifier.notify(exception, {'notifiers': 'test'})
        self.assertEqual(self.notifier_calls, 1)

        self.notifier.notify(exception, {'notifiers': 'test', 'ignore_exceptions': 'RuntimeError'})
        self.assertEqual(self.notifier_calls, 1)

        self.notifier.notify(exception, {'notifiers': 'test', 'ignore_exceptions': [RuntimeError]})
        self.assertEqual(self.notifier_calls, 1)

    def test_raising_condition_does_not_block_notification(self):
        def broken(record, options):
            raise ValueError('condição quebrada')

        self.notifier.ignore_if(broken)
        self.notifier.register('test', self.test_notifier)

        with self.assertLogs('exception_notifier.ignore', level='WARNING'):
            self.assertTrue(self.notifier.notify(raised(ExceptionOne('error')), {'notifiers': 'test'}))
        self.assertEqual(self.notifier_calls, 1)

    def test_failing_notifier_does_not_stop_others(self):
        def broken(record, options):
            raise ConnectionError('serviço fora do ar')

        self.notifier.register('broken', broken)
        self.notifier.register('test', self.test_notifier)

        with self.assertLogs('exception_notifier.notifier', level='WARNING') as logs:
            self.assertTrue(self.notifier.notify(raised(ExceptionOne('error')), {'notifiers': ['broken', 'test']}))
        self.assertEqual(self.notifier_calls, 1)
        self.assertIn("'broken'", logs.output[0])

    def test_unknown_selected_notifier_is_skipped(self):
        self.notifier.register('test', self.test_notifier)
        with self.assertLogs('exception_notifier.notifier', level='WARNING'):
            self.assertTrue(self.notifier.notify(raised(ExceptionOne('error')), {'notifiers': ['missing', 'test']}))
        self.assertEqual(self.notifier_calls, 1)

    def test_invalid_selector_does_not_escape_notify(self):
        self.notifier.register('test', self.test_notifier)
        exception = raised(ExceptionOne('error'))

        with self.assertLogs('exception_notifier.notifier', level='WARNING'):
            self.assertTrue(self.notifier.notify(exception, {'notifiers': 5}))
        with self.assertLogs('exception_notifier.notifier', level='WARNING'):
            self.assertTrue(self.notifier.notify(exception, {'notifiers': [['test'], 'test']}))
        # o nome válido ainda é notificado depois do inválido
        self.assertEqual(self.notifier_calls, 1)

    def test_failing_store_does_not_suppress(self):
        store = Mock()
        store.read.side_effect = ConnectionError('cache fora do ar')
        notifier = ExceptionNotifier(store=store, grouping_error=True)
        notifier.register('test', self.test_notifier)

        with self.assertLogs('exception_notifier.notifier', level='WARNING'):
            self.assertTrue(notifier.notify(raised(ExceptionOne('error')), {'notifiers': 'test'}))
        self.assertEqual(self.notifier_calls, 1)

    def test_reset_restores_initial_state(self):
        self.notifier.register('test', self.test_notifier)
        self.notifier.ignore_if(lambda record, options: True)
        self.notifier.reset()
        self.assertEqual(self.notifier.notifiers, ['log'])
        self.assertEqual(self.notifier.ignores.predicates, [])


class TestTestingMode(unittest.TestCase):
    def setUp(self):
        self.notifier = ExceptionNotifier(testing_mode=True)

    def test_raising_condition_is_propagated(self):
        def broken(record, options):
            raise ValueError('condição quebrada')

        self.notifier.ignore_if(broken)
        with self.assertRaises(ValueError):
            self.notifier.notify(raised(ExceptionOne('error')))

    def test_failing_notifier_is_propagated(self):
        calls = []
        self.notifier.register('broken', Mock(side_effect=ConnectionError('fora do ar')))
        self.notifier.register('after', lambda record, options: calls.append(record))

        with self.assertRaises(ConnectionError):
            self.notifier.notify(raised(ExceptionOne('error')), {'notifiers': ['broken', 'after']})
        self.assertEqual(calls, [])

    def test_invalid_selector_is_propagated(self):
        with self.assertRaises(TypeError):
            self.notifier.notify(raised(ExceptionOne('error')), {'notifiers': 5})
        with self.assertRaises(TypeError):
            self.notifier.notify(raised(ExceptionOne('error')), {'notifiers': [['log']]})

    def test_unknown_selected_notifier_is_propagated(self):
        with self.assertRaises(LookupError):
            self.notifier.notify(raised(ExceptionOne('error')), {'notifiers': 'missing'})


class TestScenarios(unittest.TestCase):
    def boom(self):
        return ExceptionRecord('RuntimeError', 'boom', ('/a:1',))

    def test_boom_is_delivered_once(self):
        notifier = ExceptionNotifier(ignored_exceptions=[], grouping_error=False, register_default=False)
        spy = Mock()
        notifier.register('only', spy)

        self.assertTrue(notifier.notify(self.boom()))
        spy.assert_called_once()
        self.assertEqual(spy.call_args[0][0], self.boom())

    def test_boom_in_ignored_list_never_reaches_notifiers(self):
        for grouping in (False, True):
            store = Mock()
            notifier = ExceptionNotifier(store=store, ignored_exceptions=['RuntimeError'],
                                         grouping_error=grouping, register_default=False)
            spy = Mock()
            notifier.register('only', spy)

            self.assertFalse(notifier.notify(self.boom()))
            spy.assert_not_called()
            store.read.assert_not_called()

    def test_accepts_live_exceptions(self):
        notifier = ExceptionNotifier(ignored_exceptions=[], register_default=False)
        spy = Mock()
        notifier.register('only', spy)

        notifier.notify(raised(RuntimeError('boom')))
        record = spy.call_args[0][0]
        self.assertEqual(record.type_name, 'RuntimeError')
        self.assertEqual(record.message, 'boom')
        self.assertIn('in `raised`', record.backtrace[0])

    def test_rejects_non_exceptions(self):
        notifier = ExceptionNotifier(register_default=False)
        with self.assertRaises(TypeError):
            notifier.notify('boom')


class TestConcurrentUse(unittest.TestCase):
    def test_registry_changes_during_dispatch(self):
        notifier = ExceptionNotifier(grouping_error=True, register_default=False)
        lock = threading.Lock()
        calls = []

        def counting(record, options):
            with lock:
                calls.append(options.get('accumulated_errors_count'))

        notifier.register('stable', counting)
        errors = []

        def dispatch():
            try:
                for i in range(200):
                    notifier.notify(ExceptionRecord('ExceptionOne', 'error', ('/a:1',)))
            except Exception as e:  # pragma: no cover
                errors.append(e)

        def churn():
            for i in range(200):
                notifier.register('temp', lambda record, options: None)
                notifier.unregister('temp')
                notifier.ignore_if(lambda record, options: False)
                notifier.clear_ignore_conditions()

        threads = [threading.Thread(target=dispatch) for _ in range(4)] + [threading.Thread(target=churn)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(errors, [])
        self.assertNotIn('temp', notifier.notifiers)
        # contagem pode perder incrementos sob concorrência, mas a primeira ocorrência sempre notifica
        self.assertIn(1, calls)


if __name__ == '__main__':
    unittest.main()
