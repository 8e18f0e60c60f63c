"""
Services for the audit trail: lifecycle events, the auditable behaviour,
the audit store and logging setup.
"""
