"""CleanCare: laundry booking API and adaptive booking client."""
