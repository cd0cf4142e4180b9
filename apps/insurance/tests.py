"""
Tests for insurance providers and claim reconciliation against bills.
"""

from decimal import Decimal

from django.test import TestCase
from rest_framework import status

from common.exceptions import InvalidArgument, InvalidState, NotFound, ReferentialConflict
from common.testing import HMSAPITestCase
from apps.patients.models import PatientProfile
from apps.billing import services as billing
from apps.billing.models import Bill, Payment
from apps.insurance import services
from apps.insurance.models import InsuranceClaim, InsuranceProvider


def create_patient(**kwargs):
    defaults = {'first_name': 'Arjun', 'last_name': 'Rao', 'gender': 'male', 'mobile_primary': '+919844444444'}
    defaults.update(kwargs)
    return PatientProfile.objects.create(**defaults)


def create_billed_patient(total):
    patient = create_patient()
    bill = billing.create_bill(patient.pk)
    billing.add_bill_item(bill.pk, {'description': 'Surgery package', 'unit_price': total, 'total': total})
    return patient, billing.get_bill(bill.pk)


class ClaimServiceTest(TestCase):

    def setUp(self):
        self.patient, self.bill = create_billed_patient(Decimal('1200.00'))
        self.provider = services.create_provider({'name': 'Star Health', 'code': 'STAR'})

    def raise_claim(self, amount=Decimal('1200.00'), **kwargs):
        return services.create_claim(self.bill.pk, self.patient.pk, self.provider.pk, amount, **kwargs)

    def test_create_claim_links_bill(self):
        claim = self.raise_claim(documents=['policy.pdf'], notes='Cashless')

        self.assertTrue(claim.claim_number.startswith('CLM-'))
        self.assertEqual(claim.status, InsuranceClaim.PENDING)
        self.assertEqual(claim.documents, ['policy.pdf'])

        bill = Bill.objects.get(pk=self.bill.pk)
        self.assertEqual(bill.insurance_claim_id, claim.pk)
        self.assertEqual(bill.insurance_amount, Decimal('1200.00'))
        self.assertEqual(bill.paid_amount, Decimal('0.00'))
        self.assertEqual(bill.payment_status, Bill.PENDING)

    def test_create_claim_validation(self):
        with self.assertRaises(InvalidArgument):
            self.raise_claim(amount=Decimal('0'))
        with self.assertRaises(InvalidArgument):
            services.create_claim(None, self.patient.pk, self.provider.pk, Decimal('10'))
        with self.assertRaises(NotFound):
            services.create_claim(999999, self.patient.pk, self.provider.pk, Decimal('10'))
        with self.assertRaises(NotFound):
            services.create_claim(self.bill.pk, self.patient.pk, 999999, Decimal('10'))

    def test_patient_must_match_bill(self):
        stranger = create_patient(mobile_primary='+919855555555')
        with self.assertRaises(InvalidArgument):
            services.create_claim(self.bill.pk, stranger.pk, self.provider.pk, Decimal('100'))
        self.assertFalse(InsuranceClaim.objects.exists())

    def test_approval_posts_insurance_payment(self):
        claim = self.raise_claim()
        claim = services.update_claim_status(claim.pk, 'Approved', admin_notes='Verified')

        self.assertEqual(claim.status, InsuranceClaim.APPROVED)
        self.assertIsNotNone(claim.resolved_at)

        bill = billing.get_bill(self.bill.pk)
        self.assertEqual(bill.paid_amount, Decimal('1200.00'))
        self.assertEqual(bill.balance_due, Decimal('0.00'))
        self.assertEqual(bill.payment_status, Bill.PAID)

        payment = Payment.objects.get(bill=bill)
        self.assertEqual(payment.payment_method, Payment.INSURANCE)
        self.assertEqual(payment.amount, Decimal('1200.00'))
        self.assertEqual(payment.transaction_reference, claim.claim_number)

    def test_reapproval_has_no_ledger_effect(self):
        claim = self.raise_claim()
        services.update_claim_status(claim.pk, 'Approved')

        with self.assertRaises(InvalidState):
            services.update_claim_status(claim.pk, 'Approved')
        with self.assertRaises(InvalidState):
            services.update_claim_status(claim.pk, 'Rejected')

        self.assertEqual(Payment.objects.filter(bill_id=self.bill.pk).count(), 1)
        self.assertEqual(Bill.objects.get(pk=self.bill.pk).paid_amount, Decimal('1200.00'))

    def test_partial_claim_leaves_balance(self):
        claim = self.raise_claim(amount=Decimal('800.00'))
        services.update_claim_status(claim.pk, 'Approved')

        bill = billing.get_bill(self.bill.pk)
        self.assertEqual(bill.payment_status, Bill.PARTIAL)
        self.assertEqual(bill.balance_due, Decimal('400.00'))

    def test_rejection_records_no_payment(self):
        claim = self.raise_claim()
        claim = services.update_claim_status(claim.pk, 'Rejected', admin_notes='Policy lapsed')

        self.assertEqual(claim.status, InsuranceClaim.REJECTED)
        self.assertEqual(claim.admin_notes, 'Policy lapsed')
        self.assertFalse(Payment.objects.exists())

    def test_pending_status_only_updates_notes(self):
        claim = self.raise_claim()
        claim = services.update_claim_status(claim.pk, 'Pending', admin_notes='Awaiting discharge summary')

        self.assertEqual(claim.status, InsuranceClaim.PENDING)
        self.assertEqual(claim.admin_notes, 'Awaiting discharge summary')
        self.assertIsNone(claim.resolved_at)

    def test_invalid_status(self):
        claim = self.raise_claim()
        with self.assertRaises(InvalidArgument):
            services.update_claim_status(claim.pk, 'Settled')
        with self.assertRaises(NotFound):
            services.update_claim_status(999999, 'Approved')

    def test_approval_rolls_back_on_cancelled_bill(self):
        claim = self.raise_claim()
        billing.update_bill(self.bill.pk, {'status': Bill.CANCELLED})

        with self.assertRaises(InvalidState):
            services.update_claim_status(claim.pk, 'Approved')
        self.assertEqual(InsuranceClaim.objects.get(pk=claim.pk).status, InsuranceClaim.PENDING)
        self.assertFalse(Payment.objects.exists())

    def test_update_pending_claim(self):
        claim = self.raise_claim()
        claim = services.update_claim(claim.pk, {'amount': Decimal('900.00'), 'documents': ['a.pdf', 'b.pdf']})

        self.assertEqual(claim.amount, Decimal('900.00'))
        self.assertEqual(Bill.objects.get(pk=self.bill.pk).insurance_amount, Decimal('900.00'))

        services.update_claim_status(claim.pk, 'Rejected')
        with self.assertRaises(InvalidState):
            services.update_claim(claim.pk, {'notes': 'late edit'})

    def test_list_claims_filters(self):
        first = self.raise_claim(amount=Decimal('100.00'))
        second = self.raise_claim(amount=Decimal('200.00'))
        services.update_claim_status(first.pk, 'Rejected')

        self.assertEqual([c.pk for c in services.list_claims()], [second.pk, first.pk])
        self.assertEqual([c.pk for c in services.list_claims(status='Pending')], [second.pk])
        self.assertEqual(services.list_claims(provider_id=self.provider.pk).count(), 2)
        self.assertEqual(services.list_claims(patient_id=self.patient.pk + 1000).count(), 0)

    def test_bill_with_claim_cannot_be_deleted(self):
        self.raise_claim()
        with self.assertRaises(ReferentialConflict):
            billing.delete_bill(self.bill.pk)


class ProviderServiceTest(TestCase):

    def test_duplicate_code_rejected(self):
        services.create_provider({'name': 'ICICI Lombard', 'code': 'ICICI'})
        with self.assertRaises(InvalidArgument):
            services.create_provider({'name': 'Another', 'code': 'ICICI'})

    def test_delete_provider_with_claims(self):
        patient, bill = create_billed_patient(Decimal('500.00'))
        provider = services.create_provider({'name': 'Niva Bupa', 'code': 'NIVA'})
        services.create_claim(bill.pk, patient.pk, provider.pk, Decimal('500.00'))

        with self.assertRaises(ReferentialConflict):
            services.delete_provider(provider.pk)

        unused = services.create_provider({'name': 'Care Health', 'code': 'CARE'})
        services.delete_provider(unused.pk)
        self.assertFalse(InsuranceProvider.objects.filter(pk=unused.pk).exists())

    def test_update_provider(self):
        provider = services.create_provider({'name': 'HDFC Ergo', 'code': 'HDFC'})
        provider = services.update_provider(provider.pk, {'status': 'Inactive', 'email': 'claims@hdfc.example'})
        self.assertEqual(provider.status, 'Inactive')
        self.assertEqual(provider.email, 'claims@hdfc.example')


class InsuranceAPITest(HMSAPITestCase):

    def setUp(self):
        super().setUp()
        self.patient, self.bill = create_billed_patient(Decimal('1200.00'))
        self.provider = services.create_provider({'name': 'Star Health', 'code': 'STAR'})

    def test_claim_approval_flow(self):
        response = self.client.post('/api/insurance/claims/', {
            'bill_id': self.bill.pk,
            'patient_id': self.patient.pk,
            'insurance_provider_id': self.provider.pk,
            'amount': '1200.00',
            'documents': ['final_bill.pdf'],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        claim_id = response.data['data']['id']

        response = self.client.put(f'/api/insurance/claims/{claim_id}/status/', {
            'status': 'Approved', 'admin_notes': 'OK'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['status'], 'Approved')
        self.assertEqual(response.data['data']['bill_payment_status'], 'Paid')
        self.assertEqual(str(response.data['data']['resolved_by_id']), self.user_id)

        response = self.client.put(f'/api/insurance/claims/{claim_id}/status/', {
            'status': 'Approved'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error']['code'], 'invalid_state')

    def test_claim_with_wrong_patient(self):
        other = create_patient(mobile_primary='+919866666666')
        response = self.client.post('/api/insurance/claims/', {
            'bill_id': self.bill.pk,
            'patient_id': other.pk,
            'insurance_provider_id': self.provider.pk,
            'amount': '100.00',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_approval_requires_approve_permission(self):
        claim = services.create_claim(self.bill.pk, self.patient.pk, self.provider.pk, Decimal('1200.00'))
        self.authenticate({'hms.insurance.view': 'all', 'hms.insurance.edit': True})

        response = self.client.put(f'/api/insurance/claims/{claim.pk}/status/', {
            'status': 'Approved'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(Payment.objects.exists())

    def test_list_claims_by_status(self):
        claim = services.create_claim(self.bill.pk, self.patient.pk, self.provider.pk, Decimal('100.00'))
        services.create_claim(self.bill.pk, self.patient.pk, self.provider.pk, Decimal('200.00'))
        services.update_claim_status(claim.pk, 'Rejected')

        response = self.client.get('/api/insurance/claims/', {'status': 'Pending'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['data'][0]['amount'], '200.00')

    def test_delete_referenced_provider_conflicts(self):
        services.create_claim(self.bill.pk, self.patient.pk, self.provider.pk, Decimal('100.00'))
        response = self.client.delete(f'/api/insurance/providers/{self.provider.pk}/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error']['code'], 'referential_conflict')
