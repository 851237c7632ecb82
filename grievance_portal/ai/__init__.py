"""
Grievance Portal
AI module.

Submodules:
    - gateway: LLM Gateway (provider routing, retry)
    - classifier: grievance category / priority / sentiment enrichment
"""
