"""
JRMP 协议常量
"""

# 握手
JRMI_MAGIC = 0x4A524D49
JRMI_VERSION = 2
STREAM_PROTOCOL = 0x4B

PROTOCOL_ACK = 0x4E
PROTOCOL_NACK = 0x4F

# 传输层操作码
OP_CALL = 0x50
OP_RETURN_DATA = 0x51
OP_PING = 0x52
OP_PING_ACK = 0x53

# 返回类型
RETURN_NORMAL = 0x01
RETURN_EXCEPTIONAL = 0x02

# 知名对象编号
REGISTRY_OBJ_NUM = 0
ACTIVATOR_OBJ_NUM = 1
DGC_OBJ_NUM = 2

# 接口哈希（旧式调用约定使用）
REGISTRY_INTERFACE_HASH = 4905912898345647071
DGC_INTERFACE_HASH = -669196253586618813

# 按方法哈希调用时的调用序号
HASH_CALL_INDEX = -1
