"""
Application Layer for the Webhook Toolkit.

This package contains:
- ports/: Abstract storage interfaces (what capture and presentation need)
- use_cases/: Presentation-facing operations over the request history
"""
