"""
Derived views over pets and applications. Pure functions, no store access.

Modules
-------
pipeline  : AnnotatedPet + recommend() + available_pets().
grouper   : ApplicationGroup + group_applications() + resolve_applicant_name().
dashboard : dashboard_stats() per Role + build_adopter_dashboard().
"""
