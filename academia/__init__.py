"""Academia: course-enrollment service."""
