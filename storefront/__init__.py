"""
Storefront: API e-commerce (FastAPI + Supabase + Stripe).

Checkout par PaymentIntent, réconciliation des webhooks Stripe,
remboursements admin et diffusion temps réel des stocks.
"""
