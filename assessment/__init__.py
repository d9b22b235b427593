"""
Exam Assessment Pipeline
assessment/

Steps:
1. Selector: difficulty-weighted question draw per section, inter-section shuffle
2. Grading: per-answer correctness, section tallies, pass/fail, heuristic insights
3. Insights: optional LLM narrative on top of the graded result (time-bounded)
4. Recommendations: next-step CTAs from the result and the exam catalog
"""
