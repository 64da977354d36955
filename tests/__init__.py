"""
Tests package for spectrum_mip.

This package contains unit and integration tests for:
- World description and bidder valuations
- World-level and bidder-type partial MIPs
- Model orchestration, solving and extraction
- Solver backends (HiGHS, CBC) and status mapping
- Demand queries and VCG payments
- Configuration, validation and run logging
"""
