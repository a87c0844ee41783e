"""
Booking Flow Tests

Running Tests:
    # Run all tests with pytest
    pytest tests/ -v

    # Run the flow controller tests
    pytest tests/unit/test_booking_flow.py -v

Test Coverage:
    - Settings normalization and caching
    - Slot synthesis and live availability parsing
    - Intent and message rules
    - Flow controller stages and triggers
    - Backend client and HTTP endpoints
"""
