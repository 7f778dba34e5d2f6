"""
Test suite for the duplicate review workflow
Tests: scan loading, merge/dismiss transitions, stale results, session-backed API
"""
from importlib import import_module
from unittest import mock

from django.conf import settings
from django.test import SimpleTestCase, TestCase
from rest_framework import status
from rest_framework.test import APIClient

from clippings.core.test_utils import StubGateway, TestDataFactory
from clippings.duplicates.store import WorkflowStore
from clippings.duplicates.workflow import (
    DISMISSED, NO_DUPLICATES_MESSAGE, PENDING, RESOLVED, RESOLVING,
    DuplicateController, DuplicateWorkflow, InvalidTransition, UnknownCandidate
)


def scanned_workflow(*duplicates):
    workflow = DuplicateWorkflow()
    workflow.load_scan(TestDataFactory.duplicates_payload(*duplicates))
    return workflow


class ScanTests(SimpleTestCase):
    """Test loading findDuplicates payloads"""

    def test_candidates_keep_source_order(self):
        workflow = scanned_workflow(
            TestDataFactory.duplicate('Flour', 'Flour (bulk)', similarity=87),
            TestDataFactory.duplicate('Sugar', 'Sugar ', similarity=99),
        )
        self.assertEqual([c.item1.name for c in workflow.candidates], ['Flour', 'Sugar'])
        self.assertEqual([c.similarity for c in workflow.candidates], [87, 99])
        self.assertTrue(all(c.state == PENDING for c in workflow.candidates))
        self.assertEqual(workflow.heading, 'Found 2 potential duplicates:')

    def test_single_candidate_heading(self):
        workflow = scanned_workflow(TestDataFactory.duplicate())
        self.assertEqual(workflow.heading, 'Found 1 potential duplicate:')

    def test_item_refs(self):
        workflow = scanned_workflow(TestDataFactory.duplicate(row1=4, row2=11))
        candidate = workflow.candidates[0]
        self.assertEqual(candidate.item1.row, 4)
        self.assertEqual(candidate.item2.row, 11)
        self.assertEqual(candidate.item2.quantity, 3)

    def test_clean_inventory(self):
        workflow = scanned_workflow()
        self.assertEqual(workflow.candidates, [])
        self.assertEqual(workflow.message, NO_DUPLICATES_MESSAGE)
        self.assertIsNone(workflow.heading)

    def test_server_failure_message(self):
        workflow = DuplicateWorkflow()
        workflow.load_scan({'success': False, 'message': 'Sheet is empty'})
        self.assertEqual(workflow.candidates, [])
        self.assertEqual(workflow.message, 'Sheet is empty')

    def test_new_scan_replaces_candidates(self):
        workflow = scanned_workflow(TestDataFactory.duplicate())
        old_ids = [c.candidate_id for c in workflow.candidates]
        workflow.load_scan(TestDataFactory.duplicates_payload(TestDataFactory.duplicate()))
        self.assertEqual(len(workflow.candidates), 1)
        self.assertNotEqual([c.candidate_id for c in workflow.candidates], old_ids)

    def test_superseded_scan_results_dropped(self):
        workflow = DuplicateWorkflow()
        first = workflow.begin_scan()
        workflow.begin_scan()
        self.assertFalse(workflow.load_scan(TestDataFactory.duplicates_payload(TestDataFactory.duplicate()), scan_id=first))
        self.assertEqual(workflow.candidates, [])


class MergeTests(SimpleTestCase):
    """Test the merge state machine"""

    def setUp(self):
        self.workflow = scanned_workflow(
            TestDataFactory.duplicate('Flour', 'Flour (bulk)'),
            TestDataFactory.duplicate('Sugar', 'Caster Sugar'),
        )
        self.first = self.workflow.candidates[0]

    def test_ticket_parameters(self):
        ticket = self.workflow.begin_merge(self.first.candidate_id, keep_first=False)
        self.assertEqual(ticket.parameters, {
            'item1Name': 'Flour', 'item2Name': 'Flour (bulk)', 'keepFirst': False,
        })
        self.assertEqual(self.first.state, RESOLVING)

    def test_success_resolves_and_leaves_notice(self):
        ticket = self.workflow.begin_merge(self.first.candidate_id, keep_first=True)
        outcome = self.workflow.complete_merge(ticket, TestDataFactory.success(
            {'success': True, 'message': 'Merged Flour (bulk) into Flour'}
        ))
        self.assertTrue(outcome.resolved)
        self.assertEqual(self.first.state, RESOLVED)
        entries = self.workflow.entries()
        self.assertEqual(entries[0], {
            'kind': 'notice',
            'candidate_id': self.first.candidate_id,
            'message': 'Merged Flour (bulk) into Flour',
        })
        self.assertEqual(entries[1]['kind'], 'candidate')

    def test_failure_returns_to_pending(self):
        """Test a failed merge puts the card back without removing it"""
        ticket = self.workflow.begin_merge(self.first.candidate_id, keep_first=True)
        outcome = self.workflow.complete_merge(ticket, TestDataFactory.transport_failure())
        self.assertFalse(outcome.resolved)
        self.assertEqual(outcome.message, 'Error: HTTP error! status: 500')
        self.assertEqual(self.first.state, PENDING)
        self.assertEqual([e['kind'] for e in self.workflow.entries()], ['candidate', 'candidate'])

    def test_rejected_merge_returns_to_pending(self):
        ticket = self.workflow.begin_merge(self.first.candidate_id, keep_first=True)
        outcome = self.workflow.complete_merge(ticket, TestDataFactory.success(
            {'success': False, 'message': 'Row 9 no longer exists'}
        ))
        self.assertEqual(outcome.message, 'Error: Row 9 no longer exists')
        self.assertEqual(self.first.state, PENDING)

    def test_no_concurrent_resolution_of_one_candidate(self):
        self.workflow.begin_merge(self.first.candidate_id, keep_first=True)
        with self.assertRaises(InvalidTransition):
            self.workflow.begin_merge(self.first.candidate_id, keep_first=False)
        with self.assertRaises(InvalidTransition):
            self.workflow.dismiss(self.first.candidate_id)

    def test_resolved_is_terminal(self):
        ticket = self.workflow.begin_merge(self.first.candidate_id, keep_first=True)
        self.workflow.complete_merge(ticket, TestDataFactory.success({'success': True, 'message': 'ok'}))
        with self.assertRaises(InvalidTransition):
            self.workflow.begin_merge(self.first.candidate_id, keep_first=True)

    def test_completion_after_new_scan_is_ignored(self):
        ticket = self.workflow.begin_merge(self.first.candidate_id, keep_first=True)
        self.workflow.begin_scan()
        outcome = self.workflow.complete_merge(ticket, TestDataFactory.success({'success': True, 'message': 'ok'}))
        self.assertTrue(outcome.stale)
        self.assertEqual(self.workflow.entries(), [])

    def test_unknown_candidate(self):
        with self.assertRaises(UnknownCandidate):
            self.workflow.begin_merge('missing-0', keep_first=True)


class DismissTests(SimpleTestCase):

    def test_dismiss_removes_entry(self):
        workflow = scanned_workflow(TestDataFactory.duplicate(), TestDataFactory.duplicate('Salt', 'Sea Salt'))
        first = workflow.candidates[0]
        workflow.dismiss(first.candidate_id)
        self.assertEqual(first.state, DISMISSED)
        ids = [e['candidate_id'] for e in workflow.entries()]
        self.assertNotIn(first.candidate_id, ids)
        self.assertEqual(len(ids), 1)

    def test_dismiss_only_once(self):
        workflow = scanned_workflow(TestDataFactory.duplicate())
        candidate_id = workflow.candidates[0].candidate_id
        workflow.dismiss(candidate_id)
        with self.assertRaises(InvalidTransition):
            workflow.dismiss(candidate_id)


class SerializationTests(SimpleTestCase):

    def test_round_trip_keeps_states(self):
        workflow = scanned_workflow(TestDataFactory.duplicate(), TestDataFactory.duplicate('Salt', 'Sea Salt'))
        ticket = workflow.begin_merge(workflow.candidates[0].candidate_id, keep_first=True)
        workflow.complete_merge(ticket, TestDataFactory.success({'success': True, 'message': 'Merged'}))
        workflow.dismiss(workflow.candidates[1].candidate_id)

        restored = DuplicateWorkflow.from_dict(workflow.to_dict())
        self.assertEqual(restored.scan_id, workflow.scan_id)
        self.assertEqual([c.state for c in restored.candidates], [RESOLVED, DISMISSED])
        self.assertEqual(restored.entries(), workflow.entries())


class ControllerTests(SimpleTestCase):
    """Test DuplicateController against a stub gateway"""

    def test_scan_and_resolve(self):
        gateway = StubGateway(
            findDuplicates=[TestDataFactory.success(TestDataFactory.duplicates_payload(TestDataFactory.duplicate()))],
            mergeDuplicates=[TestDataFactory.success({'success': True, 'message': 'Merged'})],
        )
        controller = DuplicateController(DuplicateWorkflow(), gateway)
        controller.scan()
        self.assertEqual(gateway.called('findDuplicates'), [None])

        candidate_id = controller.workflow.candidates[0].candidate_id
        outcome = controller.resolve(candidate_id, keep_first=True)
        self.assertTrue(outcome.resolved)
        self.assertTrue(gateway.called('mergeDuplicates')[0]['keepFirst'])

    def test_failed_scan_clears_candidates(self):
        gateway = StubGateway(findDuplicates=[TestDataFactory.transport_failure('Request timed out. Please try again.')])
        controller = DuplicateController(scanned_workflow(TestDataFactory.duplicate()), gateway)
        result = controller.scan()
        self.assertFalse(result.ok)
        self.assertEqual(controller.workflow.candidates, [])
        self.assertEqual(controller.workflow.message, 'Error: Request timed out. Please try again.')

    def test_merge_applied_to_reloaded_state(self):
        """Test a merge completing after a rescan elsewhere changes nothing"""
        shared = {'workflow': scanned_workflow(TestDataFactory.duplicate())}

        def reload():
            return DuplicateWorkflow.from_dict(shared['workflow'].to_dict())

        def persist(workflow):
            shared['workflow'] = DuplicateWorkflow.from_dict(workflow.to_dict())

        gateway = StubGateway(mergeDuplicates=[TestDataFactory.success({'success': True, 'message': 'Merged'})])
        original_invoke = gateway.invoke

        def invoke_during_rescan(function_name, parameters=None):
            rescanned = reload()
            rescanned.load_scan(TestDataFactory.duplicates_payload(TestDataFactory.duplicate('Rice', 'Rice ')))
            persist(rescanned)
            return original_invoke(function_name, parameters)

        gateway.invoke = invoke_during_rescan
        controller = DuplicateController(reload(), gateway, reload=reload, persist=persist)
        outcome = controller.resolve(controller.workflow.candidates[0].candidate_id, keep_first=True)

        self.assertTrue(outcome.stale)
        self.assertEqual(shared['workflow'].candidates[0].item1.name, 'Rice')
        self.assertEqual(shared['workflow'].candidates[0].state, PENDING)

    def test_crashed_merge_can_be_retried(self):
        """Test an unexpected gateway error puts the candidate back to pending"""
        shared = {'workflow': scanned_workflow(TestDataFactory.duplicate())}

        def reload():
            return DuplicateWorkflow.from_dict(shared['workflow'].to_dict())

        def persist(workflow):
            shared['workflow'] = DuplicateWorkflow.from_dict(workflow.to_dict())

        gateway = StubGateway(mergeDuplicates=[TestDataFactory.success({'success': True, 'message': 'Merged'})])
        controller = DuplicateController(reload(), gateway, reload=reload, persist=persist)
        candidate_id = controller.workflow.candidates[0].candidate_id

        with mock.patch.object(gateway, 'invoke', side_effect=RuntimeError('worker died')):
            with self.assertRaises(RuntimeError):
                controller.resolve(candidate_id, keep_first=True)
        self.assertEqual(shared['workflow'].candidates[0].state, PENDING)

        outcome = controller.resolve(candidate_id, keep_first=True)
        self.assertTrue(outcome.resolved)
        self.assertEqual(shared['workflow'].candidates[0].state, RESOLVED)


class DuplicateAPITests(TestCase):
    """Test the session-backed duplicate endpoints"""

    def setUp(self):
        self.client = APIClient()
        self.gateway = StubGateway()
        patcher = mock.patch('clippings.duplicates.views.get_gateway', return_value=self.gateway)
        patcher.start()
        self.addCleanup(patcher.stop)

    def scan(self, *duplicates):
        self.gateway.queue('findDuplicates', TestDataFactory.success(TestDataFactory.duplicates_payload(*duplicates)))
        response = self.client.post('/api/v1/duplicates/scan/', format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        return response.data

    def test_empty_state(self):
        response = self.client.get('/api/v1/duplicates/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['entries'], [])
        self.assertIsNone(response.data['scan_id'])

    def test_scan(self):
        data = self.scan(TestDataFactory.duplicate(), TestDataFactory.duplicate('Salt', 'Sea Salt', similarity=91))
        self.assertEqual(data['heading'], 'Found 2 potential duplicates:')
        self.assertEqual(data['entries'][1]['similarity'], 91)
        self.assertEqual(data['entries'][1]['item2']['name'], 'Sea Salt')

    def test_scan_failure(self):
        self.gateway.queue('findDuplicates', TestDataFactory.application_failure('Script error'))
        response = self.client.post('/api/v1/duplicates/scan/', format='json')
        self.assertEqual(response.status_code, status.HTTP_502_BAD_GATEWAY)
        self.assertEqual(response.data['error'], 'Error: Script error')

    def test_merge_success_persists_in_session(self):
        data = self.scan(TestDataFactory.duplicate())
        candidate_id = data['entries'][0]['candidate_id']
        self.gateway.queue('mergeDuplicates', TestDataFactory.success({'success': True, 'message': 'Merged'}))

        response = self.client.post(f'/api/v1/duplicates/{candidate_id}/merge/', {'keepFirst': True}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['resolved'])

        listing = self.client.get('/api/v1/duplicates/')
        self.assertEqual(listing.data['entries'], [
            {'kind': 'notice', 'candidate_id': candidate_id, 'message': 'Merged'},
        ])

    def test_merge_failure_keeps_card(self):
        """Test a failing merge returns the candidate to pending"""
        data = self.scan(TestDataFactory.duplicate())
        candidate_id = data['entries'][0]['candidate_id']
        self.gateway.queue('mergeDuplicates', TestDataFactory.transport_failure())

        response = self.client.post(f'/api/v1/duplicates/{candidate_id}/merge/', {'keepFirst': False}, format='json')
        self.assertEqual(response.status_code, status.HTTP_502_BAD_GATEWAY)
        self.assertFalse(response.data['resolved'])
        self.assertEqual(response.data['message'], 'Error: HTTP error! status: 500')
        self.assertEqual(response.data['workflow']['entries'][0]['state'], 'pending')

        listing = self.client.get('/api/v1/duplicates/')
        self.assertEqual(listing.data['entries'][0]['kind'], 'candidate')

    def test_merge_after_crash_is_not_blocked(self):
        data = self.scan(TestDataFactory.duplicate())
        candidate_id = data['entries'][0]['candidate_id']

        with mock.patch.object(self.gateway, 'invoke', side_effect=RuntimeError('worker died')):
            with self.assertRaises(RuntimeError):
                self.client.post(f'/api/v1/duplicates/{candidate_id}/merge/', {'keepFirst': True}, format='json')

        listing = self.client.get('/api/v1/duplicates/')
        self.assertEqual(listing.data['entries'][0]['state'], 'pending')

        self.gateway.queue('mergeDuplicates', TestDataFactory.success({'success': True, 'message': 'Merged'}))
        response = self.client.post(f'/api/v1/duplicates/{candidate_id}/merge/', {'keepFirst': True}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['resolved'])

    def test_rescan_in_another_request_makes_merge_stale(self):
        """Test a merge finishing after a rescan written to the session is ignored"""
        data = self.scan(TestDataFactory.duplicate())
        candidate_id = data['entries'][0]['candidate_id']
        session_key = self.client.cookies[settings.SESSION_COOKIE_NAME].value
        engine = import_module(settings.SESSION_ENGINE)
        original_invoke = self.gateway.invoke

        def invoke_during_rescan(function_name, parameters=None):
            store = WorkflowStore(engine.SessionStore(session_key=session_key))
            rescanned = store.load()
            rescanned.load_scan(TestDataFactory.duplicates_payload(TestDataFactory.duplicate('Rice', 'Rice ')))
            store.save(rescanned)
            return original_invoke(function_name, parameters)

        self.gateway.queue('mergeDuplicates', TestDataFactory.success({'success': True, 'message': 'Merged'}))
        with mock.patch.object(self.gateway, 'invoke', side_effect=invoke_during_rescan):
            response = self.client.post(f'/api/v1/duplicates/{candidate_id}/merge/', {'keepFirst': True}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['stale'])
        self.assertFalse(response.data['resolved'])

        listing = self.client.get('/api/v1/duplicates/')
        entries = listing.data['entries']
        self.assertEqual(len(entries), 1)
        self.assertEqual(entries[0]['item1']['name'], 'Rice')
        self.assertEqual(entries[0]['state'], 'pending')
        self.assertNotEqual(entries[0]['candidate_id'], candidate_id)

    def test_merge_requires_keep_first(self):
        data = self.scan(TestDataFactory.duplicate())
        candidate_id = data['entries'][0]['candidate_id']
        response = self.client.post(f'/api/v1/duplicates/{candidate_id}/merge/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(self.gateway.called('mergeDuplicates'), [])

    def test_dismiss(self):
        data = self.scan(TestDataFactory.duplicate())
        candidate_id = data['entries'][0]['candidate_id']
        response = self.client.post(f'/api/v1/duplicates/{candidate_id}/dismiss/', format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['entries'], [])

        again = self.client.post(f'/api/v1/duplicates/{candidate_id}/dismiss/', format='json')
        self.assertEqual(again.status_code, status.HTTP_409_CONFLICT)

    def test_unknown_candidate(self):
        self.scan(TestDataFactory.duplicate())
        response = self.client.post('/api/v1/duplicates/nope-0/dismiss/', format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
