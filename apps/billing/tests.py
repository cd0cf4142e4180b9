"""
Tests for the billing ledger: aggregation, payments and the bill workflow.
"""

from decimal import Decimal

from django.test import TestCase, SimpleTestCase
from rest_framework import status

from common.exceptions import InvalidArgument, InvalidState, NotFound, ReferentialConflict
from common.testing import HMSAPITestCase
from apps.patients.models import PatientProfile
from apps.billing import services
from apps.billing.models import Bill, BillItem, BillingItem, Payment, derive_payment_status, money


def create_patient(**kwargs):
    defaults = {'first_name': 'Meera', 'last_name': 'Iyer', 'gender': 'female', 'mobile_primary': '+919833333333'}
    defaults.update(kwargs)
    return PatientProfile.objects.create(**defaults)


class DerivePaymentStatusTest(SimpleTestCase):

    def test_pending_partial_paid(self):
        self.assertEqual(derive_payment_status(0, 1000), Bill.PENDING)
        self.assertEqual(derive_payment_status(Decimal('0.01'), 1000), Bill.PARTIAL)
        self.assertEqual(derive_payment_status(1000, 1000), Bill.PAID)

    def test_overpayment_is_paid(self):
        self.assertEqual(derive_payment_status(1200, 1000), Bill.PAID)

    def test_empty_bill_is_pending(self):
        self.assertEqual(derive_payment_status(0, 0), Bill.PENDING)

    def test_money_rounds_half_up(self):
        self.assertEqual(money('10.005'), Decimal('10.01'))
        self.assertEqual(money(None), Decimal('0.00'))


class BillServiceTest(TestCase):

    def setUp(self):
        self.patient = create_patient()
        self.bill = services.create_bill(self.patient.pk, notes='Admission bill')

    def add_item(self, total, **kwargs):
        attrs = {'description': 'Service', 'unit_price': total, 'total': total}
        attrs.update(kwargs)
        return services.add_bill_item(self.bill.pk, attrs)

    def test_new_bill_is_zeroed_draft(self):
        self.assertTrue(self.bill.bill_number.startswith('BILL/'))
        self.assertEqual(self.bill.status, Bill.DRAFT)
        self.assertEqual(self.bill.total_amount, Decimal('0.00'))
        self.assertEqual(self.bill.payment_status, Bill.PENDING)

    def test_create_bill_unknown_patient(self):
        with self.assertRaises(NotFound):
            services.create_bill(999999)

    def test_items_aggregate_into_bill(self):
        self.add_item(Decimal('500.00'), tax=Decimal('25.00'))
        bill = self.add_item(Decimal('300.00'), discount=Decimal('50.00'), tax=Decimal('15.00'))

        self.assertEqual(bill.subtotal, Decimal('800.00'))
        self.assertEqual(bill.tax_amount, Decimal('40.00'))
        self.assertEqual(bill.discount_amount, Decimal('50.00'))
        self.assertEqual(bill.total_amount, Decimal('790.00'))
        self.assertEqual(bill.balance_due, Decimal('790.00'))
        self.assertEqual(bill.items.count(), 2)

    def test_partial_then_full_payment(self):
        self.add_item(Decimal('1000.00'))

        services.record_payment(self.bill.pk, Decimal('400'), 'Cash')
        bill = services.get_bill(self.bill.pk)
        self.assertEqual(bill.payment_status, Bill.PARTIAL)
        self.assertEqual(bill.balance_due, Decimal('600.00'))

        payment = services.record_payment(self.bill.pk, Decimal('600'), 'Card')
        bill = services.get_bill(self.bill.pk)
        self.assertEqual(bill.payment_status, Bill.PAID)
        self.assertEqual(bill.paid_amount, Decimal('1000.00'))
        self.assertEqual(bill.balance_due, Decimal('0.00'))
        self.assertTrue(payment.payment_id.startswith('PAY/'))
        self.assertEqual(payment.patient_id, self.patient.pk)

    def test_invalid_payments_leave_bill_untouched(self):
        self.add_item(Decimal('1000.00'))
        services.record_payment(self.bill.pk, Decimal('100'), 'Cash')

        with self.assertRaises(InvalidArgument):
            services.record_payment(self.bill.pk, Decimal('-50'), 'Cash')
        with self.assertRaises(InvalidArgument):
            services.record_payment(self.bill.pk, Decimal('0'), 'Cash')
        with self.assertRaises(InvalidArgument):
            services.record_payment(self.bill.pk, Decimal('50'), 'Barter')

        bill = services.get_bill(self.bill.pk)
        self.assertEqual(bill.paid_amount, Decimal('100.00'))
        self.assertEqual(Payment.objects.filter(bill=bill).count(), 1)

    def test_payment_on_missing_bill(self):
        with self.assertRaises(NotFound):
            services.record_payment(999999, Decimal('10'), 'Cash')

    def test_items_only_on_draft_bills(self):
        self.add_item(Decimal('200.00'))
        services.update_bill(self.bill.pk, {'status': Bill.FINAL})

        with self.assertRaises(InvalidState):
            self.add_item(Decimal('100.00'))
        self.assertEqual(services.get_bill(self.bill.pk).total_amount, Decimal('200.00'))

        # Final bills still take payments
        services.record_payment(self.bill.pk, Decimal('200'), 'UPI')
        self.assertEqual(services.get_bill(self.bill.pk).payment_status, Bill.PAID)

    def test_cancelled_and_void_bills_reject_payments(self):
        self.add_item(Decimal('200.00'))
        services.update_bill(self.bill.pk, {'status': Bill.CANCELLED})
        with self.assertRaises(InvalidState):
            services.record_payment(self.bill.pk, Decimal('50'), 'Cash')

        other = services.create_bill(self.patient.pk)
        services.update_bill(other.pk, {'status': Bill.VOID})
        with self.assertRaises(InvalidState):
            services.record_payment(other.pk, Decimal('50'), 'Cash')

    def test_status_workflow(self):
        services.update_bill(self.bill.pk, {'status': Bill.FINAL})
        with self.assertRaises(InvalidState):
            services.update_bill(self.bill.pk, {'status': Bill.DRAFT})
        with self.assertRaises(InvalidArgument):
            services.update_bill(self.bill.pk, {'status': 'Archived'})

        bill = services.update_bill(self.bill.pk, {'status': Bill.VOID, 'notes': 'Raised in error'})
        self.assertEqual(bill.status, Bill.VOID)
        self.assertEqual(bill.notes, 'Raised in error')

    def test_update_ignores_money_fields(self):
        self.add_item(Decimal('300.00'))
        bill = services.update_bill(self.bill.pk, {'total_amount': Decimal('1'), 'paid_amount': Decimal('300')})
        self.assertEqual(bill.total_amount, Decimal('300.00'))
        self.assertEqual(bill.paid_amount, Decimal('0.00'))

    def test_catalog_defaults(self):
        catalog = BillingItem.objects.create(code='XR-CHEST', name='Chest X-Ray', category='Radiology',
                                             unit_price=Decimal('650.00'))
        bill = services.add_bill_item(self.bill.pk, {'billing_item': catalog.pk, 'total': Decimal('650.00')})

        item = bill.items.get()
        self.assertEqual(item.description, 'Chest X-Ray')
        self.assertEqual(item.unit_price, Decimal('650.00'))
        self.assertEqual(item.billing_item, catalog)

    def test_item_requires_total(self):
        with self.assertRaises(InvalidArgument):
            services.add_bill_item(self.bill.pk, {'description': 'Dressing', 'unit_price': Decimal('80')})

    def test_recalculate_is_idempotent(self):
        self.add_item(Decimal('450.00'), tax=Decimal('22.50'))
        bill = Bill.objects.get(pk=self.bill.pk)
        services.recalculate_bill(bill)
        services.recalculate_bill(bill)
        bill.refresh_from_db()
        self.assertEqual(bill.total_amount, Decimal('472.50'))

    def test_items_and_payments_are_append_only(self):
        self.add_item(Decimal('100.00'))
        payment = services.record_payment(self.bill.pk, Decimal('100'), 'Cash')

        item = BillItem.objects.get(bill=self.bill)
        item.total = Decimal('1.00')
        with self.assertRaises(InvalidState):
            item.save()
        payment.amount = Decimal('1.00')
        with self.assertRaises(InvalidState):
            payment.save()

    def test_delete_bill(self):
        self.add_item(Decimal('100.00'))
        with self.assertRaises(ReferentialConflict):
            services.delete_bill(self.bill.pk)

        empty = services.create_bill(self.patient.pk)
        services.delete_bill(empty.pk)
        self.assertFalse(Bill.objects.filter(pk=empty.pk).exists())

    def test_list_payments_filters(self):
        self.add_item(Decimal('1000.00'))
        services.record_payment(self.bill.pk, Decimal('100'), 'Cash')
        services.record_payment(self.bill.pk, Decimal('200'), 'UPI')

        self.assertEqual(services.list_payments(bill_id=self.bill.pk).count(), 2)
        self.assertEqual(services.list_payments(payment_method='UPI').get().amount, Decimal('200.00'))


class BillAPITest(HMSAPITestCase):

    def setUp(self):
        super().setUp()
        self.patient = create_patient()

    def test_bill_lifecycle(self):
        response = self.client.post('/api/billing/bills/', {
            'patient': self.patient.pk, 'notes': 'OPD consultation'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        bill_id = response.data['data']['id']
        self.assertEqual(str(response.data['data']['created_by_id']), self.user_id)

        response = self.client.post(f'/api/billing/bills/{bill_id}/items/', {
            'description': 'Consultation', 'quantity': 1, 'unit_price': '1000.00', 'total': '1000.00'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['data']['total_amount'], '1000.00')

        response = self.client.post(f'/api/billing/bills/{bill_id}/payments/', {
            'amount': '400.00', 'payment_method': 'Cash'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['data']['bill']['payment_status'], 'Partial')
        self.assertEqual(response.data['data']['bill']['balance_due'], '600.00')

        response = self.client.get(f'/api/billing/bills/{bill_id}/payments/')
        self.assertEqual(response.data['count'], 1)

        response = self.client.get(f'/api/billing/bills/{bill_id}/')
        self.assertEqual(len(response.data['data']['items']), 1)
        self.assertEqual(len(response.data['data']['payments']), 1)

    def test_money_fields_not_writable(self):
        bill = services.create_bill(self.patient.pk)
        response = self.client.patch(f'/api/billing/bills/{bill.pk}/', {
            'paid_amount': '5000.00', 'payment_status': 'Paid', 'notes': 'Updated'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['paid_amount'], '0.00')
        self.assertEqual(response.data['data']['payment_status'], 'Pending')
        self.assertEqual(response.data['data']['notes'], 'Updated')

    def test_invalid_transition_is_conflict(self):
        bill = services.create_bill(self.patient.pk)
        services.update_bill(bill.pk, {'status': Bill.CANCELLED})
        response = self.client.patch(f'/api/billing/bills/{bill.pk}/', {'status': 'Final'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error']['code'], 'invalid_state')

    def test_zero_payment_rejected(self):
        bill = services.create_bill(self.patient.pk)
        response = self.client.post(f'/api/billing/bills/{bill.pk}/payments/', {
            'amount': '0', 'payment_method': 'Cash'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_payments_endpoint_is_read_only(self):
        response = self.client.post('/api/billing/payments/', {'amount': '10'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_405_METHOD_NOT_ALLOWED)

    def test_billing_items_list_active_only(self):
        BillingItem.objects.create(code='LAB-CBC', name='CBC', category='Laboratory', unit_price=Decimal('300'))
        BillingItem.objects.create(code='OLD', name='Retired', category='Laboratory',
                                   unit_price=Decimal('10'), is_active=False)
        response = self.client.get('/api/billing/billing-items/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([item['code'] for item in response.data['data']], ['LAB-CBC'])

    def test_own_scope_limits_bill_list(self):
        services.create_bill(self.patient.pk, actor_id=self.user_id)
        services.create_bill(self.patient.pk, actor_id='11111111-1111-4111-8111-111111111111')

        self.authenticate({'hms.billing.view': 'own'})
        response = self.client.get('/api/billing/bills/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)

    def test_record_payment_requires_permission(self):
        bill = services.create_bill(self.patient.pk)
        self.authenticate({'hms.billing.view': 'all'})
        response = self.client.post(f'/api/billing/bills/{bill.pk}/payments/', {
            'amount': '10.00', 'payment_method': 'Cash'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
