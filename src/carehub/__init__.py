"""
CareHub: healthcare platform REST backend

Doctors, patients, appointments, prescriptions, medical records, companies,
job listings, messaging and notifications over a document store.
"""

__version__ = "0.1.0"
__author__ = "CareHub Team"
__description__ = "Healthcare platform REST backend"
