# Greenstore API Test Suite
