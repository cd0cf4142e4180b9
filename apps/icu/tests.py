"""
Tests for ICU admissions and the append-only vitals log.
"""

from decimal import Decimal

from django.test import TestCase
from rest_framework import status

from common.exceptions import InvalidArgument, InvalidState, NotFound
from common.testing import HMSAPITestCase
from apps.patients.models import PatientProfile
from apps.wards import services as registry
from apps.wards.models import Bed
from apps.icu import services
from apps.icu.models import ICUVitalsLog
from apps.ipd.models import AdmissionStatus


def create_patient(**kwargs):
    defaults = {'first_name': 'Karan', 'last_name': 'Shah', 'gender': 'male', 'mobile_primary': '+919811111111'}
    defaults.update(kwargs)
    return PatientProfile.objects.create(**defaults)


class ICUServiceTest(TestCase):

    def setUp(self):
        self.patient = create_patient()
        self.icu = registry.create_ward({'name': 'ICU North', 'type': 'ICU'})
        self.general = registry.create_ward({'name': 'General A', 'type': 'General'})
        self.icu_bed = registry.create_bed(self.icu.pk, {'bed_number': 'ICU-1', 'bed_type': 'ICU'})
        self.icu_bed2 = registry.create_bed(self.icu.pk, {'bed_number': 'ICU-2', 'bed_type': 'ICU'})
        self.general_bed = registry.create_bed(self.general.pk, {'bed_number': 'G-1'})

    def test_admit_occupies_icu_bed(self):
        admission = services.admit(self.patient.pk, self.icu_bed.pk, ventilator_support=True)

        self.assertTrue(admission.admission_id.startswith('ICU/'))
        self.assertEqual(admission.status, AdmissionStatus.ACTIVE)
        self.icu.refresh_from_db()
        self.assertEqual(self.icu.available_beds, 1)

    def test_admit_rejects_non_icu_bed(self):
        with self.assertRaises(InvalidArgument):
            services.admit(self.patient.pk, self.general_bed.pk)
        self.general_bed.refresh_from_db()
        self.assertEqual(self.general_bed.status, Bed.AVAILABLE)

    def test_admit_rejects_occupied_bed(self):
        services.admit(self.patient.pk, self.icu_bed.pk)
        with self.assertRaises(InvalidState):
            services.admit(create_patient(mobile_primary='+919822222222').pk, self.icu_bed.pk)

    def test_update_vitals_appends_and_sets_current(self):
        admission = services.admit(self.patient.pk, self.icu_bed.pk)

        services.update_vitals(admission.pk, {'heart_rate': 110, 'spo2': Decimal('91.50')})
        admission = services.update_vitals(admission.pk, {
            'heart_rate': 96, 'bp_systolic': 120, 'bp_diastolic': 80, 'temperature': Decimal('37.4')
        })

        self.assertEqual(ICUVitalsLog.objects.filter(icu_admission=admission).count(), 2)
        self.assertEqual(admission.current_vitals['heart_rate'], 96)
        self.assertNotIn('spo2', admission.current_vitals)

        history = list(services.vitals_history(admission.pk))
        self.assertEqual(history[0].heart_rate, 96)
        self.assertEqual(history[1].heart_rate, 110)

    def test_vitals_history_limit(self):
        admission = services.admit(self.patient.pk, self.icu_bed.pk)
        for rate in range(60, 90):
            services.update_vitals(admission.pk, {'heart_rate': rate})

        self.assertEqual(len(services.vitals_history(admission.pk)), 24)
        self.assertEqual(len(services.vitals_history(admission.pk, limit=5)), 5)

    def test_vitals_entries_are_append_only(self):
        admission = services.admit(self.patient.pk, self.icu_bed.pk)
        services.update_vitals(admission.pk, {'heart_rate': 80})
        entry = ICUVitalsLog.objects.get()

        entry.heart_rate = 200
        with self.assertRaises(InvalidState):
            entry.save()
        with self.assertRaises(InvalidState):
            entry.delete()

    def test_vitals_rejected_after_discharge(self):
        admission = services.admit(self.patient.pk, self.icu_bed.pk)
        services.discharge(admission.pk, disposition='Shifted to ward')

        with self.assertRaises(InvalidState):
            services.update_vitals(admission.pk, {'heart_rate': 80})
        with self.assertRaises(NotFound):
            services.update_vitals(999999, {'heart_rate': 80})

    def test_discharge_releases_bed_once(self):
        admission = services.admit(self.patient.pk, self.icu_bed.pk)
        admission = services.discharge(admission.pk, disposition='Home', discharge_type='Deceased')

        self.assertEqual(admission.status, AdmissionStatus.DECEASED)
        self.assertEqual(admission.discharge_disposition, 'Home')
        self.icu.refresh_from_db()
        self.assertEqual(self.icu.available_beds, 2)

        with self.assertRaises(InvalidState):
            services.discharge(admission.pk)
        self.icu.refresh_from_db()
        self.assertEqual(self.icu.available_beds, 2)

    def test_update_icu_admission(self):
        admission = services.admit(self.patient.pk, self.icu_bed.pk)
        admission = services.update_icu_admission(admission.pk, {
            'condition_status': 'Stable', 'ventilator_support': True, 'status': 'Discharged'
        })
        self.assertEqual(admission.condition_status, 'Stable')
        self.assertTrue(admission.ventilator_support)
        self.assertEqual(admission.status, AdmissionStatus.ACTIVE)

    def test_stats_and_beds(self):
        services.admit(self.patient.pk, self.icu_bed.pk, ventilator_support=True)

        stats = services.icu_stats()
        self.assertEqual(stats, {
            'total_beds': 2, 'available_beds': 1, 'active_patients': 1, 'on_ventilator': 1
        })
        self.assertEqual([b.bed_number for b in services.icu_beds()], ['ICU-1', 'ICU-2'])


class ICUAPITest(HMSAPITestCase):

    def setUp(self):
        super().setUp()
        self.patient = create_patient()
        self.icu = registry.create_ward({'name': 'ICU North', 'type': 'ICU'})
        self.bed = registry.create_bed(self.icu.pk, {'bed_number': 'ICU-1'})

    def test_admit_record_vitals_and_history(self):
        response = self.client.post('/api/icu/admissions/', {
            'patient_id': self.patient.pk, 'bed_id': self.bed.pk, 'condition_status': 'Serious'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        admission_id = response.data['data']['id']

        response = self.client.post(f'/api/icu/admissions/{admission_id}/vitals/', {
            'bp_systolic': 118, 'bp_diastolic': 76, 'heart_rate': 92
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['current_vitals']['heart_rate'], 92)

        response = self.client.get(f'/api/icu/admissions/{admission_id}/vitals-history/')
        self.assertEqual(len(response.data['data']), 1)
        self.assertEqual(str(response.data['data'][0]['recorded_by_id']), self.user_id)

    def test_invalid_blood_pressure_rejected(self):
        admission = services.admit(self.patient.pk, self.bed.pk)
        response = self.client.post(f'/api/icu/admissions/{admission.pk}/vitals/', {
            'bp_systolic': 70, 'bp_diastolic': 90
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error']['code'], 'invalid_argument')

    def test_stats_endpoint(self):
        response = self.client.get('/api/icu/admissions/stats/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['total_beds'], 1)
