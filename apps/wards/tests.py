"""
Tests for the bed/ward registry and its counters.
"""

from decimal import Decimal

from django.db.models import Count, Q
from django.test import TestCase
from rest_framework import status

from common.exceptions import InvalidArgument, InvalidState, NotFound
from common.testing import HMSAPITestCase
from apps.wards import services
from apps.wards.models import Ward, Bed
from apps.patients.models import PatientProfile
from apps.ipd import services as ipd
from apps.icu import services as icu


def assert_counters_consistent(testcase, ward):
    ward.refresh_from_db()
    counts = ward.beds.aggregate(
        total=Count('id'),
        available=Count('id', filter=Q(status=Bed.AVAILABLE)),
    )
    testcase.assertEqual(ward.total_beds, counts['total'])
    testcase.assertEqual(ward.available_beds, counts['available'])
    testcase.assertTrue(0 <= ward.available_beds <= ward.total_beds)


class WardCounterTest(TestCase):
    """Counter maintenance in apps.wards.services."""

    def setUp(self):
        self.ward = services.create_ward({'name': 'General A', 'type': 'General', 'floor': '1'})

    def test_new_ward_starts_empty(self):
        self.assertEqual(self.ward.total_beds, 0)
        self.assertEqual(self.ward.available_beds, 0)

    def test_create_available_bed_grows_both_counters(self):
        services.create_bed(self.ward.pk, {'bed_number': 'A-1'})
        self.ward.refresh_from_db()
        self.assertEqual(self.ward.total_beds, 1)
        self.assertEqual(self.ward.available_beds, 1)

    def test_create_maintenance_bed_grows_total_only(self):
        bed = services.create_bed(self.ward.pk, {'bed_number': 'A-1', 'status': Bed.MAINTENANCE})
        self.ward.refresh_from_db()
        self.assertEqual(bed.status, Bed.MAINTENANCE)
        self.assertEqual(self.ward.total_beds, 1)
        self.assertEqual(self.ward.available_beds, 0)

    def test_create_bed_defaults(self):
        bed = services.create_bed(self.ward.pk, {'bed_number': 'A-1'})
        self.assertEqual(bed.bed_type, 'Standard')
        self.assertIsNone(bed.daily_rate)

    def test_create_bed_missing_ward(self):
        with self.assertRaises(NotFound):
            services.create_bed(999999, {'bed_number': 'X-1'})

    def test_create_bed_invalid_status(self):
        with self.assertRaises(InvalidArgument):
            services.create_bed(self.ward.pk, {'bed_number': 'A-1', 'status': 'Broken'})
        self.ward.refresh_from_db()
        self.assertEqual(self.ward.total_beds, 0)

    def test_status_transitions_move_available_counter(self):
        bed = services.create_bed(self.ward.pk, {'bed_number': 'A-1'})

        services.occupy_bed(bed.pk)
        self.ward.refresh_from_db()
        self.assertEqual(self.ward.available_beds, 0)

        # Occupied -> Maintenance does not touch the counter
        services.update_bed_status(bed.pk, Bed.MAINTENANCE)
        self.ward.refresh_from_db()
        self.assertEqual(self.ward.available_beds, 0)

        services.release_bed(bed.pk)
        self.ward.refresh_from_db()
        self.assertEqual(self.ward.available_beds, 1)

    def test_same_status_is_a_no_op(self):
        bed = services.create_bed(self.ward.pk, {'bed_number': 'A-1'})
        services.update_bed_status(bed.pk, Bed.AVAILABLE)
        self.ward.refresh_from_db()
        self.assertEqual(self.ward.available_beds, 1)

    def test_invalid_status_rejected(self):
        bed = services.create_bed(self.ward.pk, {'bed_number': 'A-1'})
        with self.assertRaises(InvalidArgument):
            services.update_bed_status(bed.pk, 'Cleaning')

    def test_update_missing_bed(self):
        with self.assertRaises(NotFound):
            services.update_bed_status(424242, Bed.OCCUPIED)

    def test_delete_bed_shrinks_counters(self):
        available = services.create_bed(self.ward.pk, {'bed_number': 'A-1'})
        reserved = services.create_bed(self.ward.pk, {'bed_number': 'A-2', 'status': Bed.RESERVED})

        services.delete_bed(reserved.pk)
        self.ward.refresh_from_db()
        self.assertEqual((self.ward.total_beds, self.ward.available_beds), (1, 1))

        services.delete_bed(available.pk)
        self.ward.refresh_from_db()
        self.assertEqual((self.ward.total_beds, self.ward.available_beds), (0, 0))

    def test_counter_invariant_after_mixed_sequence(self):
        beds = [services.create_bed(self.ward.pk, {'bed_number': f'A-{i}'}) for i in range(1, 6)]
        services.occupy_bed(beds[0].pk)
        services.update_bed_status(beds[1].pk, Bed.MAINTENANCE)
        services.update_bed_status(beds[2].pk, Bed.RESERVED)
        services.release_bed(beds[1].pk)
        services.delete_bed(beds[3].pk)
        services.create_bed(self.ward.pk, {'bed_number': 'A-9', 'status': Bed.OCCUPIED})
        services.update_bed_status(beds[0].pk, Bed.OCCUPIED)

        assert_counters_consistent(self, self.ward)
        self.assertEqual(self.ward.total_beds, 5)
        self.assertEqual(self.ward.available_beds, 2)

    def test_move_bed_between_wards(self):
        other = services.create_ward({'name': 'General B'})
        bed = services.create_bed(self.ward.pk, {'bed_number': 'A-1'})
        services.create_bed(self.ward.pk, {'bed_number': 'A-2', 'status': Bed.MAINTENANCE})

        services.update_bed(bed.pk, {'ward': other, 'daily_rate': Decimal('1500.00')})

        bed.refresh_from_db()
        self.assertEqual(bed.ward_id, other.pk)
        self.assertEqual(bed.daily_rate, Decimal('1500.00'))
        assert_counters_consistent(self, self.ward)
        assert_counters_consistent(self, other)
        self.assertEqual((other.total_beds, other.available_beds), (1, 1))
        self.assertEqual((self.ward.total_beds, self.ward.available_beds), (1, 0))

    def test_update_bed_with_status(self):
        bed = services.create_bed(self.ward.pk, {'bed_number': 'A-1'})
        bed = services.update_bed(bed.pk, {'bed_type': 'Deluxe', 'status': Bed.RESERVED})
        self.assertEqual(bed.bed_type, 'Deluxe')
        self.assertEqual(bed.status, Bed.RESERVED)
        assert_counters_consistent(self, self.ward)

    def test_recount_corrects_drift(self):
        services.create_bed(self.ward.pk, {'bed_number': 'A-1'})
        services.create_bed(self.ward.pk, {'bed_number': 'A-2'})
        Ward.objects.filter(pk=self.ward.pk).update(total_beds=7, available_beds=0)

        with self.assertLogs('apps.wards.services', level='WARNING'):
            ward, drift = services.recount_ward(self.ward.pk)

        self.assertTrue(drift)
        self.assertEqual((ward.total_beds, ward.available_beds), (2, 2))

        _, drift = services.recount_ward(self.ward.pk)
        self.assertFalse(drift)

    def test_available_beds_ordered_by_ward_then_number(self):
        icu = services.create_ward({'name': 'Alpha ICU', 'type': 'ICU'})
        services.create_bed(self.ward.pk, {'bed_number': 'B-2'})
        services.create_bed(self.ward.pk, {'bed_number': 'B-1'})
        occupied = services.create_bed(icu.pk, {'bed_number': 'I-2'})
        services.create_bed(icu.pk, {'bed_number': 'I-1'})
        services.occupy_bed(occupied.pk)

        listed = [(b.ward.name, b.bed_number) for b in services.get_available_beds()]
        self.assertEqual(listed, [('Alpha ICU', 'I-1'), ('General A', 'B-1'), ('General A', 'B-2')])

        by_ward = services.get_available_beds(icu.pk)
        self.assertEqual([b.bed_number for b in by_ward], ['I-1'])

    def test_occupancy_stats(self):
        bed = services.create_bed(self.ward.pk, {'bed_number': 'A-1'})
        services.create_bed(self.ward.pk, {'bed_number': 'A-2'})
        services.occupy_bed(bed.pk)

        stats = services.occupancy_stats()
        self.assertEqual(stats['totals']['total_beds'], 2)
        self.assertEqual(stats['totals']['occupied_beds'], 1)
        self.assertEqual(stats['totals']['occupancy_rate'], 50.0)
        self.assertEqual(stats['wards'][0]['name'], 'General A')

    def test_delete_ward_removes_beds(self):
        services.create_bed(self.ward.pk, {'bed_number': 'A-1'})
        services.delete_ward(self.ward.pk)
        self.assertFalse(Ward.objects.filter(pk=self.ward.pk).exists())
        self.assertEqual(Bed.objects.count(), 0)


class BoundBedTest(TestCase):
    """Beds held by an Active admission change only through the admission."""

    def setUp(self):
        self.ward = services.create_ward({'name': 'General A', 'type': 'General'})
        self.other = services.create_ward({'name': 'General B', 'type': 'General'})
        self.bed = services.create_bed(self.ward.pk, {'bed_number': 'A-1'})
        self.patient = PatientProfile.objects.create(
            first_name='Meera', gender='female', mobile_primary='+919822222222'
        )

    def test_status_change_rejected_while_admitted(self):
        ipd.admit(self.patient.pk, bed_id=self.bed.pk)

        for new_status in (Bed.AVAILABLE, Bed.MAINTENANCE):
            with self.assertRaises(InvalidState):
                services.update_bed_status(self.bed.pk, new_status)

        self.bed.refresh_from_db()
        self.assertEqual(self.bed.status, Bed.OCCUPIED)
        self.ward.refresh_from_db()
        self.assertEqual(self.ward.available_beds, 0)

    def test_same_status_allowed_while_admitted(self):
        ipd.admit(self.patient.pk, bed_id=self.bed.pk)
        bed = services.update_bed_status(self.bed.pk, Bed.OCCUPIED)
        self.assertEqual(bed.status, Bed.OCCUPIED)

    def test_move_and_status_via_update_rejected_while_admitted(self):
        ipd.admit(self.patient.pk, bed_id=self.bed.pk)

        with self.assertRaises(InvalidState):
            services.update_bed(self.bed.pk, {'ward': self.other.pk})
        with self.assertRaises(InvalidState):
            services.update_bed(self.bed.pk, {'status': Bed.AVAILABLE})

        self.bed.refresh_from_db()
        self.assertEqual(self.bed.ward_id, self.ward.pk)
        self.assertEqual(self.bed.status, Bed.OCCUPIED)
        assert_counters_consistent(self, self.ward)
        assert_counters_consistent(self, self.other)

    def test_descriptive_update_allowed_while_admitted(self):
        ipd.admit(self.patient.pk, bed_id=self.bed.pk)
        bed = services.update_bed(self.bed.pk, {'daily_rate': Decimal('1500.00')})
        self.assertEqual(bed.daily_rate, Decimal('1500.00'))
        self.assertEqual(bed.status, Bed.OCCUPIED)

    def test_icu_admission_also_binds_bed(self):
        icu_ward = services.create_ward({'name': 'ICU North', 'type': 'ICU'})
        icu_bed = services.create_bed(icu_ward.pk, {'bed_number': 'ICU-1'})
        icu.admit(self.patient.pk, icu_bed.pk)

        with self.assertRaises(InvalidState):
            services.update_bed_status(icu_bed.pk, Bed.AVAILABLE)

    def test_status_change_allowed_after_discharge(self):
        admission = ipd.admit(self.patient.pk, bed_id=self.bed.pk)
        ipd.discharge(admission.pk, 'Normal')

        bed = services.update_bed_status(self.bed.pk, Bed.MAINTENANCE)
        self.assertEqual(bed.status, Bed.MAINTENANCE)
        assert_counters_consistent(self, self.ward)


class WardAPITest(HMSAPITestCase):
    """HTTP surface of /api/wards/."""

    def test_create_ward_ignores_counters(self):
        response = self.client.post('/api/wards/wards/', {
            'name': 'Surgical 1', 'type': 'Surgical', 'total_beds': 40, 'available_beds': 40
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['success'])
        self.assertEqual(response.data['data']['total_beds'], 0)
        self.assertEqual(response.data['data']['available_beds'], 0)

    def test_create_bed_and_change_status(self):
        ward = services.create_ward({'name': 'General A'})
        response = self.client.post('/api/wards/beds/', {
            'ward': ward.pk, 'bed_number': 'A-1', 'daily_rate': '1200.00'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        bed_id = response.data['data']['id']

        response = self.client.post(f'/api/wards/beds/{bed_id}/status/', {'status': 'Occupied'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['status'], 'Occupied')

        ward.refresh_from_db()
        self.assertEqual((ward.total_beds, ward.available_beds), (1, 0))

    def test_invalid_status_returns_error_envelope(self):
        ward = services.create_ward({'name': 'General A'})
        bed = services.create_bed(ward.pk, {'bed_number': 'A-1'})

        response = self.client.post(f'/api/wards/beds/{bed.pk}/status/', {'status': 'Broken'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(response.data['success'])
        self.assertEqual(response.data['error']['code'], 'invalid_argument')

    def test_missing_bed_returns_not_found(self):
        response = self.client.post('/api/wards/beds/99999/status/', {'status': 'Occupied'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertFalse(response.data['success'])

    def test_available_and_recount(self):
        ward = services.create_ward({'name': 'General A'})
        services.create_bed(ward.pk, {'bed_number': 'A-1'})

        response = self.client.get('/api/wards/beds/available/')
        self.assertEqual(response.data['count'], 1)

        response = self.client.post(f'/api/wards/wards/{ward.pk}/recount/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['data']['drift_corrected'])

    def test_requires_token(self):
        self.client.credentials()
        response = self.client.get('/api/wards/wards/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_permission_mapping_enforced(self):
        self.authenticate({'hms.wards.view': 'all'})

        self.assertEqual(self.client.get('/api/wards/wards/').status_code, status.HTTP_200_OK)
        response = self.client.post('/api/wards/wards/', {'name': 'X'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['error']['code'], 'permission_denied')

    def test_status_change_on_admitted_bed_conflicts(self):
        ward = services.create_ward({'name': 'General A'})
        bed = services.create_bed(ward.pk, {'bed_number': 'A-1'})
        patient = PatientProfile.objects.create(first_name='Meera', gender='female', mobile_primary='+919822222222')
        ipd.admit(patient.pk, bed_id=bed.pk)

        response = self.client.post(f'/api/wards/beds/{bed.pk}/status/', {'status': 'Available'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error']['code'], 'invalid_state')
        bed.refresh_from_db()
        self.assertEqual(bed.status, Bed.OCCUPIED)
