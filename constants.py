# Global Constants

class Roles:
    STUDENT = "Student"
    FACULTY = "Faculty"
    ADMIN = "Admin"


class NotificationKinds:
    NEW_MESSAGE = "new_message"
    NEW_GROUP_MESSAGE = "new_group_message"
    FRIEND_REQUEST = "friend_request"
    FRIEND_REQUEST_ACCEPTED = "friend_request_accepted"
    FRIEND_REQUEST_DECLINED = "friend_request_declined"
    LIKE = "like"
    COMMENT = "comment"
    DISLIKE = "dislike"
    BAN_REQUEST = "ban_request"
    BAN_REQUEST_APPROVED = "ban_request_approved"
    BAN_REQUEST_REJECTED = "ban_request_rejected"


class RealtimeEvents:
    # Outbound
    RECEIVE_MESSAGE = "receiveMessage"
    NEW_NOTIFICATION = "newNotification"
    NOTIFICATION_DELETED = "notificationDeleted"
    NOTIFICATION_READ = "notificationRead"
    NOTIFICATION_VIEWED = "notificationViewed"
    JOINED = "joined"
    ERROR = "error"
    # Inbound
    JOIN = "join"
    SEND_MESSAGE = "sendMessage"


class RequestStatus:
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


class BanRequestStatus:
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Collections:
    USERS = "users"
    POSTS = "posts"
    MESSAGES = "messages"
    GROUPS = "groups"
    NOTIFICATIONS = "notifications"
    FRIEND_REQUESTS = "friend_requests"
    BAN_REQUESTS = "ban_requests"
