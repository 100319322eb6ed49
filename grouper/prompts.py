"""Grouper 集中式提示词管理模块。

本文件统一管理 Grouper 中所有 LLM 提示词模板，每个模板均标注调用位置和用途。

提示词分类：
1. 焦点小组参与者 (Participant) 提示词：对单条措辞给出反应
2. 创意 (Creative) 提示词：总结反馈并提出新措辞
3. 通用提示词：重试
"""

# =============================================================================
# 通用提示词
# =============================================================================

# 调用位置: reactor.py / creative.py: JSON 解析失败后的重试前缀
# 用途: 告知 LLM 上一次输出格式有误，要求重新输出合法 JSON
RETRY_JSON_PREFIX = (
    "Your previous answer could not be parsed: {error}\n"
    "Answer again with valid JSON only.\n\n"
)


# =============================================================================
# 参与者 (Participant) 提示词
# =============================================================================

# 调用位置: reactor.py: ParticipantReactor.evaluate()
# 用途: 注入参与者人设
PARTICIPANT_SYSTEM_PROMPT = (
    "You are a member of a focus group.\n"
    "Your replies are confidential and you don't need to worry about\n"
    "anyone knowing what you said, so you can share your feelings\n"
    "honestly without fear of judgment or consequences.\n"
    "Be honest.\n\n"
    "Your persona:\n"
    "{contribution}"
)

# 调用位置: reactor.py: ParticipantReactor._build_user_prompt()
# 用途: 呈现一条措辞，要求以李克特量表评估是否达成目标
PARTICIPANT_USER_PROMPT = (
    "React to the following message given your persona:\n\n"
    "<message>{wording}</message>\n\n"
    "Assess in terms of whether it would produce the following objective in your mind:\n"
    "<objective>{objective}</objective>\n"
    "{deliverable_line}"
    "\n"
    "Answer with strict JSON:\n"
    "```json\n"
    "{{\n"
    '  "positives": "what works for you",\n'
    '  "negatives": "what does not",\n'
    '  "quotes": ["things you might say about it"],\n'
    '  "rating": "strongly_disagree | disagree | neutral | agree | strongly_agree"\n'
    "}}\n"
    "```\n"
    "The rating answers: this message would achieve the objective for me.\n"
)

# 调用位置: reactor.py: 当 Message 带有 deliverable 时拼接
PARTICIPANT_DELIVERABLE_LINE = (
    "Also consider whether it is effective as <deliverable>{deliverable}</deliverable>\n"
)


# =============================================================================
# 创意 (Creative) 提示词
# =============================================================================

# 调用位置: creative.py: CreativeAgent.rewrite()
# 用途: 注入本轮选中的创意人设
CREATIVE_SYSTEM_PROMPT = (
    "You write messaging for campaigns that are tested with focus groups.\n\n"
    "{persona}"
)

# 调用位置: creative.py: CreativeAgent.rewrite()
# 用途: 基于本轮反馈与历史最佳措辞，输出反馈摘要与新措辞
CREATIVE_USER_PROMPT = (
    "Given the objectives, consider the following feedback:\n"
    "{feedback}\n\n"
    "Create new message wordings we could try.\n\n"
    "Be creative. Try to break through!\n\n"
    "Never use more than {max_variants} variants.\n\n"
    "Best scoring variants so far:\n"
    "{current_best}\n\n"
    "Answer with strict JSON:\n"
    "```json\n"
    "{{\n"
    '  "summary": "what the feedback tells us, in at most {max_words} words",\n'
    '  "wordings": ["new wording", "..."]\n'
    "}}\n"
    "```\n"
)
