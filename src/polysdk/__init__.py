"""polysdk.

Client library for the polyapi data model service: password login with
cached bearer tokens, and create/get/search/update/delete calls against a
single application model.
"""

__version__ = "0.1.0"
