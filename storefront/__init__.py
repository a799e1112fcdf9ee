"""Digital book storefront.

Buyers browse the catalog, pay out of band through a UPI deep link and read
purchased books through short-lived signed links once an administrator has
verified the payment. A two-party support chat connects buyers with the
administrator.
"""

__all__ = [
]
