"""Services package - invoice lifecycle, financing and payment ledgers, analytics."""
