"""
Fees app for school fee payments and disputes.

This app handles:
- Fee invoice generation and cancellation
- Payment initiation and gateway status handling (callbacks and polling)
- Payment disputes raised by students and resolved by school admins
- Reconciliation of stuck payments
- Receipts and daily collection reports

Related apps:
    - tenants: School every fee row belongs to
    - authentication: Users and their roles

Usage:
    from fees.services import PaymentService

    result = PaymentService.initiate_payment(student, invoice_id)
    if result.success:
        redirect_to(result.data.checkout_url)
"""
