# primitives/
# 核心数据模型与进度事件 / Core data models & progress events
