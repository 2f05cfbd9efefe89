"""
Markwise Backend — Services Layer
==================================

What:  Business logic between the routes (HTTP) and the database.
How:   Services are stateless singletons. Each workflow method receives
       the request's AsyncSession and, for AI workflows, the active
       LLMService, so tests can hand in mocks for either.

Service Inventory:
    - LLMService (abstract), OpenAIService, GeminiService: model access
    - FileService: upload storage, local file reads, remote fetches
    - ExtractionService: submission and rubric text extraction
    - GradingService: AI grading and grade storage
    - LessonService: lesson plans and slide decks
    - ChatService: StudyBuddy tutor conversations
    - AnalyticsService: class summary, teacher dashboard, CSV export

Pure helpers (no I/O) live beside them: grading.py for score arithmetic,
prompts.py for every prompt the models see.
"""
