"""
RMIProbe - Java RMI 安全评估客户端

对 RMI 注册中心、DGC 与激活系统发送构造的 JRMP 调用，
根据服务端返回的异常判断配置与漏洞状态，并枚举远程对象。

子包:
    rmiprobe.serialization  Java 序列化流读写
    rmiprobe.protocol       JRMP 传输与调用分发
    rmiprobe.methods        方法签名与字典
    rmiprobe.objects        远程对象描述
    rmiprobe.probes         探测器
    rmiprobe.session        单目标枚举会话

使用示例:
    from rmiprobe.session import EnumSession
    report = EnumSession("10.0.0.5", 1099).run()
"""

__version__ = "1.0.0"
__author__ = "RMIProbe Team"

__all__ = ["__version__"]
