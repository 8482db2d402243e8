"""Authentication and authorization.

Learn: Users log in with email/password (bcrypt, password.py) and get a
24-hour JWT (jwt.py). Protected routes resolve that token into a Principal
(dependencies.py), whose user_id scopes every task query.
"""
