from mockinterview.generation.chain import QuestionChain, build_question_chain
from mockinterview.generation.generator import QuestionGenerator, QuestionRequest

__all__ = ["QuestionChain", "QuestionGenerator", "QuestionRequest", "build_question_chain"]
