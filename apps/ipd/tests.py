"""
Tests for the IPD admission lifecycle and its bed bookkeeping.
"""

import uuid

from django.test import TestCase
from rest_framework import status

from common.exceptions import InvalidArgument, InvalidState, NotFound, ReferentialConflict
from common.testing import HMSAPITestCase
from apps.patients.models import PatientProfile
from apps.wards import services as registry
from apps.wards.models import Bed
from apps.ipd import services
from apps.ipd.models import IPDAdmission, BedTransfer, AdmissionStatus


def create_patient(**kwargs):
    defaults = {'first_name': 'Asha', 'last_name': 'Rao', 'gender': 'female', 'mobile_primary': '+919800000001'}
    defaults.update(kwargs)
    return PatientProfile.objects.create(**defaults)


class IPDLifecycleTest(TestCase):

    def setUp(self):
        self.patient = create_patient()
        self.ward = registry.create_ward({'name': 'General A'})
        self.b1 = registry.create_bed(self.ward.pk, {'bed_number': 'B1'})
        self.b2 = registry.create_bed(self.ward.pk, {'bed_number': 'B2'})
        self.actor = uuid.uuid4()

    def _ward_available(self):
        self.ward.refresh_from_db()
        return self.ward.available_beds

    def test_admit_then_discharge_restores_bed(self):
        admission = services.admit(self.patient.pk, bed_id=self.b1.pk, actor_id=self.actor)

        self.assertEqual(admission.status, AdmissionStatus.ACTIVE)
        self.assertTrue(admission.admission_id.startswith('IPD/'))
        self.assertEqual(admission.admitting_diagnosis, 'Pending evaluation')
        self.assertEqual(admission.created_by_id, self.actor)
        self.assertEqual(admission.bed.ward.name, 'General A')
        self.assertEqual(self._ward_available(), 1)
        self.b1.refresh_from_db()
        self.assertEqual(self.b1.status, Bed.OCCUPIED)

        admission = services.discharge(admission.pk, 'Normal', 'Recovered', actor_id=self.actor)

        self.assertEqual(admission.status, AdmissionStatus.DISCHARGED)
        self.assertIsNotNone(admission.actual_discharge_date)
        self.assertEqual(admission.discharged_by_id, self.actor)
        self.assertEqual(self._ward_available(), 2)
        self.b1.refresh_from_db()
        self.assertEqual(self.b1.status, Bed.AVAILABLE)

    def test_repeat_discharge_rejected_without_counter_change(self):
        admission = services.admit(self.patient.pk, bed_id=self.b1.pk)
        services.discharge(admission.pk, 'Normal')
        before = self._ward_available()

        with self.assertRaises(InvalidState):
            services.discharge(admission.pk, 'Normal')

        self.assertEqual(self._ward_available(), before)

    def test_discharge_type_sets_terminal_status(self):
        cases = [
            ('Deceased', AdmissionStatus.DECEASED),
            ('Transferred', AdmissionStatus.TRANSFERRED),
            ('LAMA', AdmissionStatus.DISCHARGED),
        ]
        for discharge_type, expected in cases:
            admission = services.admit(self.patient.pk)
            admission = services.discharge(admission.pk, discharge_type)
            self.assertEqual(admission.status, expected)

    def test_admit_without_bed(self):
        admission = services.admit(self.patient.pk, admission_type='Daycare')
        self.assertIsNone(admission.bed)
        self.assertEqual(admission.admission_type, 'Daycare')
        self.assertEqual(self._ward_available(), 2)

    def test_admit_into_occupied_bed_rejected(self):
        services.admit(self.patient.pk, bed_id=self.b1.pk)
        other = create_patient(first_name='Ravi', mobile_primary='+919800000002')

        with self.assertRaises(InvalidState):
            services.admit(other.pk, bed_id=self.b1.pk)

        self.assertEqual(IPDAdmission.objects.count(), 1)
        self.assertEqual(self._ward_available(), 1)

    def test_admit_missing_patient_or_bed(self):
        with self.assertRaises(NotFound):
            services.admit(999999, bed_id=self.b1.pk)
        with self.assertRaises(NotFound):
            services.admit(self.patient.pk, bed_id=999999)
        self.assertEqual(self._ward_available(), 2)

    def test_bed_transfer_moves_occupancy_and_records_history(self):
        admission = services.admit(self.patient.pk, bed_id=self.b1.pk)

        admission = services.bed_transfer(admission.pk, self.b2.pk, reason='Closer to nurse station', actor_id=self.actor)

        self.assertEqual(admission.bed_id, self.b2.pk)
        self.b1.refresh_from_db()
        self.b2.refresh_from_db()
        self.assertEqual(self.b1.status, Bed.AVAILABLE)
        self.assertEqual(self.b2.status, Bed.OCCUPIED)
        self.assertEqual(self._ward_available(), 1)

        transfer = BedTransfer.objects.get(admission=admission)
        self.assertEqual(transfer.from_bed_id, self.b1.pk)
        self.assertEqual(transfer.to_bed_id, self.b2.pk)
        self.assertEqual(transfer.performed_by_id, self.actor)

    def test_bed_transfer_to_same_bed_rejected(self):
        admission = services.admit(self.patient.pk, bed_id=self.b1.pk)
        with self.assertRaises(InvalidArgument):
            services.bed_transfer(admission.pk, self.b1.pk)

    def test_bed_transfer_to_unavailable_bed_rejected(self):
        admission = services.admit(self.patient.pk, bed_id=self.b1.pk)
        registry.update_bed_status(self.b2.pk, Bed.MAINTENANCE)

        with self.assertRaises(InvalidState):
            services.bed_transfer(admission.pk, self.b2.pk)

        self.b1.refresh_from_db()
        self.assertEqual(self.b1.status, Bed.OCCUPIED)
        self.assertFalse(BedTransfer.objects.exists())

    def test_bed_transfer_requires_active_admission(self):
        admission = services.admit(self.patient.pk, bed_id=self.b1.pk)
        services.discharge(admission.pk, 'Normal')

        with self.assertRaises(NotFound):
            services.bed_transfer(admission.pk, self.b2.pk)
        with self.assertRaises(NotFound):
            services.bed_transfer(999999, self.b2.pk)

    def test_update_admission_ignores_bed_and_status(self):
        admission = services.admit(self.patient.pk, bed_id=self.b1.pk)
        admission = services.update_admission(admission.pk, {
            'treatment_plan': 'IV antibiotics',
            'status': AdmissionStatus.DISCHARGED,
            'bed': self.b2,
        })
        self.assertEqual(admission.treatment_plan, 'IV antibiotics')
        self.assertEqual(admission.status, AdmissionStatus.ACTIVE)
        self.assertEqual(admission.bed_id, self.b1.pk)

    def test_get_active_newest_first(self):
        first = services.admit(self.patient.pk)
        second = services.admit(self.patient.pk)
        services.discharge(first.pk, 'Normal')
        self.assertEqual([a.pk for a in services.get_active()], [second.pk])

    def test_bound_bed_and_ward_cannot_be_deleted(self):
        services.admit(self.patient.pk, bed_id=self.b1.pk)

        with self.assertRaises(ReferentialConflict):
            registry.delete_bed(self.b1.pk)
        with self.assertRaises(ReferentialConflict):
            registry.delete_ward(self.ward.pk)

    def test_discharged_bed_can_be_deleted(self):
        admission = services.admit(self.patient.pk, bed_id=self.b1.pk)
        services.discharge(admission.pk, 'Normal')

        registry.delete_bed(self.b1.pk)

        admission.refresh_from_db()
        self.assertIsNone(admission.bed_id)
        self.ward.refresh_from_db()
        self.assertEqual((self.ward.total_beds, self.ward.available_beds), (1, 1))

    def test_admission_ids_are_sequential(self):
        a1 = services.admit(self.patient.pk)
        a2 = services.admit(self.patient.pk)
        self.assertEqual(int(a2.admission_id[-3:]), int(a1.admission_id[-3:]) + 1)


class IPDAPITest(HMSAPITestCase):

    def setUp(self):
        super().setUp()
        self.patient = create_patient()
        self.ward = registry.create_ward({'name': 'General A'})
        self.bed = registry.create_bed(self.ward.pk, {'bed_number': 'B1'})

    def test_admit_and_discharge_over_http(self):
        response = self.client.post('/api/ipd/admissions/', {
            'patient_id': self.patient.pk,
            'bed_id': self.bed.pk,
            'admitting_diagnosis': 'Dengue fever',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        data = response.data['data']
        self.assertEqual(data['bed_number'], 'B1')
        self.assertEqual(data['ward_name'], 'General A')
        self.assertEqual(str(data['created_by_id']), self.user_id)

        response = self.client.get('/api/ipd/admissions/active/')
        self.assertEqual(response.data['count'], 1)

        url = f"/api/ipd/admissions/{data['id']}/discharge/"
        response = self.client.post(url, {'discharge_type': 'Normal'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['status'], 'Discharged')

        response = self.client.post(url, {'discharge_type': 'Normal'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error']['code'], 'invalid_state')

    def test_status_is_not_writable_on_create(self):
        response = self.client.post('/api/ipd/admissions/', {
            'patient_id': self.patient.pk, 'status': 'Discharged'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['data']['status'], 'Active')

    def test_available_beds_endpoint(self):
        response = self.client.get('/api/ipd/admissions/available-beds/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([b['bed_number'] for b in response.data['data']], ['B1'])

    def test_delete_not_allowed(self):
        admission = services.admit(self.patient.pk)
        response = self.client.delete(f'/api/ipd/admissions/{admission.pk}/')
        self.assertEqual(response.status_code, status.HTTP_405_METHOD_NOT_ALLOWED)
