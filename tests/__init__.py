"""WordWise test suites."""
