"""
Apparatus Checkout
Daily apparatus inspections and equipment defect tracking, stored as issues in
an external issue tracker.
"""
