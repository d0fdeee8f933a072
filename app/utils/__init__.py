"""
Request helpers shared by the API blueprints
"""
