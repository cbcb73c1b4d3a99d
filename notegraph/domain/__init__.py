"""
notegraph Domain - graph pipeline and cooperative scheduling.
"""
