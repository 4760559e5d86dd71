"""
Billing domain: plan catalog, plan picker state, eligibility and benefit lists.
Pure logic, no request handling; the web layer lives in blueprints/billing.
"""
