import datetime

from django.test import TestCase
from rest_framework import status

from common.testing import HMSAPITestCase
from .models import PatientProfile


class PatientProfileModelTest(TestCase):

    def test_patient_id_sequence(self):
        year = datetime.datetime.now().year
        first = PatientProfile.objects.create(first_name='Asha', gender='female', mobile_primary='+919800000001')
        second = PatientProfile.objects.create(first_name='Ravi', gender='male', mobile_primary='+919800000002')

        self.assertEqual(first.patient_id, f'PAT{year}0001')
        self.assertEqual(second.patient_id, f'PAT{year}0002')

    def test_full_name_and_age(self):
        patient = PatientProfile(first_name='Asha', last_name='Menon', gender='female')
        self.assertEqual(patient.full_name, 'Asha Menon')
        self.assertIsNone(patient.age)

        patient.date_of_birth = datetime.date.today().replace(year=datetime.date.today().year - 30)
        self.assertEqual(patient.age, 30)


class PatientAPITest(HMSAPITestCase):

    def test_register_patient(self):
        response = self.client.post('/api/patients/', {
            'first_name': 'Neha',
            'last_name': 'Kapoor',
            'gender': 'female',
            'mobile_primary': '+919812345678',
            'blood_group': 'O+',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['data']['patient_id'].startswith('PAT'))
        self.assertEqual(str(response.data['data']['created_by_id']), self.user_id)

    def test_future_date_of_birth_rejected(self):
        response = self.client.post('/api/patients/', {
            'first_name': 'Neha',
            'gender': 'female',
            'mobile_primary': '+919812345678',
            'date_of_birth': (datetime.date.today() + datetime.timedelta(days=1)).isoformat(),
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_destroy_is_soft_delete(self):
        patient = PatientProfile.objects.create(first_name='Om', gender='male', mobile_primary='+919800000003')
        response = self.client.delete(f'/api/patients/{patient.pk}/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        patient.refresh_from_db()
        self.assertEqual(patient.status, 'inactive')

    def test_search(self):
        PatientProfile.objects.create(first_name='Om', last_name='Prakash', gender='male',
                                      mobile_primary='+919800000004')
        PatientProfile.objects.create(first_name='Lata', gender='female', mobile_primary='+919800000005')

        response = self.client.get('/api/patients/', {'search': 'Prakash'})
        self.assertEqual(response.data['count'], 1)

    def test_view_permission_required(self):
        self.authenticate({'hms.patients.view': 'none'})
        response = self.client.get('/api/patients/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_missing_token_rejected(self):
        self.client.credentials()
        response = self.client.get('/api/patients/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
