"""quizflow source tree."""
